"""Pytest configuration and shared fixtures.

This module contains controller builders and an in-memory sink so the
splitter can be exercised without touching the filesystem.
"""

from pathlib import Path

import pytest

from fsmsplit.core.persistence import save_controller
from fsmsplit.core.types import (
    BlendingMode,
    ConditionMode,
    Controller,
    InterruptionSource,
    Layer,
    ParameterType,
)


class MemorySink:
    """Collects saved controllers instead of writing them."""

    def __init__(self) -> None:
        self.saved: dict[str, Controller] = {}

    def save(self, controller: Controller, name: str) -> Path | None:
        self.saved[name] = controller
        return None


def build_locomotion_controller() -> Controller:
    """Build the Idle/Walk/Run/Attack scenario.

    Base Layer: Idle -> Walk -> Run -> Idle, Attack unreachable from Idle,
    any-state entry into Idle gated on the "Enter" trigger. Idle is the
    default state. An "EyeBlink" carry layer holds Open <-> Closed.
    """
    controller = Controller(name="Hero")
    controller.add_parameter("Enter", ParameterType.TRIGGER)
    controller.add_parameter("Speed", ParameterType.FLOAT)

    base = controller.add_layer("Base Layer")
    machine = base.state_machine
    idle = machine.add_state("Idle")
    walk = machine.add_state("Walk")
    run = machine.add_state("Run")
    attack = machine.add_state("Attack")
    machine.default_state = idle

    idle.motion = "clips/idle.anim"
    idle.add_behaviour("FootstepEmitter").properties["volume"] = 0.4
    walk.speed = 1.25
    walk.mirror = True
    run.cycle_offset = 0.5
    run.ik_on_feet = True
    run.write_default_values = False
    attack.tag = "combat"

    to_walk = idle.add_transition(walk)
    to_walk.name = "start walking"
    to_walk.has_exit_time = True
    to_walk.exit_time = 0.9
    to_walk.add_condition(ConditionMode.GREATER, 0.1, "Speed")

    to_run = walk.add_transition(run)
    to_run.duration = 0.1
    to_run.interruption_source = InterruptionSource.DESTINATION
    to_run.add_condition(ConditionMode.GREATER, 0.6, "Speed")

    to_idle = run.add_transition(idle)
    to_idle.offset = 0.2
    to_idle.add_condition(ConditionMode.LESS, 0.1, "Speed")

    enter = machine.add_any_state_transition(idle)
    enter.name = "enter"
    enter.has_fixed_duration = False
    enter.add_condition(ConditionMode.IF, 0.0, "Enter")

    carry = controller.add_layer("EyeBlink")
    carry.default_weight = 0.5
    carry.avatar_mask = "masks/face.mask"
    carry.blending_mode = BlendingMode.ADDITIVE
    carry.ik_pass = True
    carry.synced_layer_index = 0
    carry.synced_layer_affects_timing = True
    opened = carry.state_machine.add_state("Open")
    closed = carry.state_machine.add_state("Closed")
    carry.state_machine.default_state = opened
    opened.add_transition(closed).has_exit_time = True
    closed.add_transition(opened).has_exit_time = True

    return controller


def build_two_group_controller() -> Controller:
    """Build a controller matching the default rules.

    Group "enter-state": Intro (any-state entry on EnterState) -> Intro Loop.
    Group "team": TeamA -> TeamShared, TeamB -> TeamShared.
    Lobby stays behind.
    """
    controller = Controller(name="Show")
    controller.add_parameter("EnterState", ParameterType.TRIGGER)

    base = controller.add_layer("Base Layer")
    machine = base.state_machine
    lobby = machine.add_state("Lobby")
    intro = machine.add_state("Intro")
    intro_loop = machine.add_state("Intro Loop")
    team_a = machine.add_state("TeamA")
    team_b = machine.add_state("TeamB")
    team_shared = machine.add_state("TeamShared")
    machine.default_state = lobby

    intro.add_transition(intro_loop)
    team_a.add_transition(team_shared)
    team_b.add_transition(team_shared)
    lobby.add_transition(intro)

    machine.add_any_state_transition(intro).add_condition(ConditionMode.IF, 0.0, "EnterState")

    carry = controller.add_layer("EyeBlink")
    carry.state_machine.add_state("Blink")

    return controller


@pytest.fixture
def locomotion() -> Controller:
    return build_locomotion_controller()


@pytest.fixture
def two_groups() -> Controller:
    return build_two_group_controller()


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def base_layer(locomotion: Controller) -> Layer:
    layer = locomotion.get_layer("Base Layer")
    assert layer is not None
    return layer


@pytest.fixture
def controller_file(tmp_path: Path) -> Path:
    """Write the two-group controller to a JSON file and return its path."""
    path = tmp_path / "show.json"
    save_controller(build_two_group_controller(), path)
    return path


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at a temp directory so no user config is read."""
    config_home = tmp_path / "xdg-config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return config_home
