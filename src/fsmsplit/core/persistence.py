"""Persistence utilities for fsmsplit controllers.

Controllers are stored as JSON documents. Transitions reference their
destination by state name; names are resolved after every state of a
layer has been read. All writes use the atomic temp file + rename pattern.

Document schema (version 1.0):
{
    "version": "1.0",
    "name": "Hero",
    "parameters": [{"name": "EnterState", "type": "trigger"}],
    "layers": [
        {
            "name": "Base Layer",
            "default_weight": 1.0,
            "avatar_mask": null,
            "blending_mode": "override",
            "ik_pass": false,
            "synced_layer_index": -1,
            "synced_layer_affects_timing": false,
            "state_machine": {
                "default_state": "Idle",
                "states": [{"name": "Idle", "transitions": [...], ...}],
                "any_state_transitions": [{"destination": "Idle", ...}]
            }
        }
    ]
}
"""

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from fsmsplit.core.constants import CONTROLLER_SUFFIX, DOCUMENT_VERSION
from fsmsplit.core.exceptions import PersistenceError
from fsmsplit.core.types import (
    BlendingMode,
    ConditionMode,
    Controller,
    InterruptionSource,
    Layer,
    ParameterType,
    State,
    StateMachine,
    Transition,
)

logger = logging.getLogger(__name__)

# Scalar state attributes serialized under their own names
_STATE_FIELDS: tuple[str, ...] = (
    "tag",
    "motion",
    "speed",
    "speed_parameter_active",
    "speed_parameter",
    "time_parameter_active",
    "time_parameter",
    "mirror",
    "mirror_parameter_active",
    "mirror_parameter",
    "cycle_offset",
    "cycle_offset_parameter_active",
    "cycle_offset_parameter",
    "ik_on_feet",
    "write_default_values",
)

_TRANSITION_FIELDS: tuple[str, ...] = (
    "name",
    "has_exit_time",
    "exit_time",
    "has_fixed_duration",
    "duration",
    "offset",
    "ordered_interruption",
)


class ControllerSink(Protocol):
    """Destination for extracted controllers."""

    def save(self, controller: Controller, name: str) -> Path | None:
        """Durably store ``controller`` under ``name``."""
        ...


def _transition_to_dict(transition: Transition) -> dict[str, Any]:
    data: dict[str, Any] = {
        "destination": transition.destination.name if transition.destination else None,
    }
    for name in _TRANSITION_FIELDS:
        data[name] = getattr(transition, name)
    data["interruption_source"] = transition.interruption_source.value
    data["conditions"] = [
        {"mode": c.mode.value, "threshold": c.threshold, "parameter": c.parameter}
        for c in transition.conditions
    ]
    return data


def _state_to_dict(state: State) -> dict[str, Any]:
    data: dict[str, Any] = {"name": state.name}
    for name in _STATE_FIELDS:
        data[name] = getattr(state, name)
    data["behaviours"] = [
        {"type": b.type_name, "properties": dict(b.properties)} for b in state.behaviours
    ]
    data["transitions"] = [_transition_to_dict(t) for t in state.transitions]
    return data


def _layer_to_dict(layer: Layer) -> dict[str, Any]:
    machine = layer.state_machine
    return {
        "name": layer.name,
        "default_weight": layer.default_weight,
        "avatar_mask": layer.avatar_mask,
        "blending_mode": layer.blending_mode.value,
        "ik_pass": layer.ik_pass,
        "synced_layer_index": layer.synced_layer_index,
        "synced_layer_affects_timing": layer.synced_layer_affects_timing,
        "state_machine": {
            "default_state": machine.default_state.name if machine.default_state else None,
            "states": [_state_to_dict(s) for s in machine.states.values()],
            "any_state_transitions": [
                _transition_to_dict(t) for t in machine.any_state_transitions
            ],
        },
    }


def controller_to_dict(controller: Controller) -> dict[str, Any]:
    """Serialize a controller to a JSON-compatible document."""
    return {
        "version": DOCUMENT_VERSION,
        "name": controller.name,
        "parameters": [{"name": p.name, "type": p.type.value} for p in controller.parameters],
        "layers": [_layer_to_dict(layer) for layer in controller.layers],
    }


def _resolve(machine: StateMachine, name: str | None) -> State | None:
    if name is None:
        return None
    state = machine.get_state(name)
    if state is None:
        raise PersistenceError(f"Transition points at unknown state '{name}'")
    return state


def _fill_transition(transition: Transition, data: dict[str, Any]) -> None:
    for name in _TRANSITION_FIELDS:
        if name in data:
            setattr(transition, name, data[name])
    if "interruption_source" in data:
        transition.interruption_source = InterruptionSource(data["interruption_source"])
    for item in data.get("conditions", []):
        transition.add_condition(
            ConditionMode(item["mode"]), float(item.get("threshold", 0.0)), item["parameter"]
        )


def _state_machine_from_dict(data: dict[str, Any]) -> StateMachine:
    machine = StateMachine()
    state_items = data.get("states", [])

    # First pass creates every state so transitions can resolve by name
    for item in state_items:
        try:
            state = machine.add_state(item["name"])
        except ValueError as e:
            raise PersistenceError(str(e)) from e
        for name in _STATE_FIELDS:
            if name in item:
                setattr(state, name, item[name])
        for behaviour in item.get("behaviours", []):
            state.add_behaviour(behaviour["type"]).properties.update(
                behaviour.get("properties", {})
            )

    for item in state_items:
        state = machine.states[item["name"]]
        for transition_data in item.get("transitions", []):
            transition = state.add_transition(_resolve(machine, transition_data.get("destination")))
            _fill_transition(transition, transition_data)

    for transition_data in data.get("any_state_transitions", []):
        destination = _resolve(machine, transition_data.get("destination"))
        transition = Transition(destination=destination)
        machine.any_state_transitions.append(transition)
        _fill_transition(transition, transition_data)

    default_name = data.get("default_state")
    if default_name is not None:
        machine.default_state = machine.get_state(default_name)
        if machine.default_state is None:
            raise PersistenceError(f"Default state '{default_name}' does not exist")

    return machine


def controller_from_dict(data: dict[str, Any]) -> Controller:
    """Deserialize a controller document.

    Raises:
        PersistenceError: If the document is malformed or references
            unknown states.
    """
    version = data.get("version", DOCUMENT_VERSION)
    if version != DOCUMENT_VERSION:
        raise PersistenceError(f"Unsupported controller document version '{version}'")

    try:
        controller = Controller(name=data["name"])
        for item in data.get("parameters", []):
            controller.add_parameter(item["name"], ParameterType(item["type"]))

        for item in data.get("layers", []):
            layer = controller.add_layer(item["name"])
            layer.default_weight = float(item.get("default_weight", layer.default_weight))
            layer.avatar_mask = item.get("avatar_mask")
            layer.blending_mode = BlendingMode(item.get("blending_mode", "override"))
            layer.ik_pass = bool(item.get("ik_pass", False))
            layer.synced_layer_index = int(item.get("synced_layer_index", -1))
            layer.synced_layer_affects_timing = bool(
                item.get("synced_layer_affects_timing", False)
            )
            layer.state_machine = _state_machine_from_dict(item.get("state_machine", {}))
    except (KeyError, TypeError, ValueError) as e:
        raise PersistenceError(f"Controller document is malformed: {e}") from e

    return controller


def load_controller(path: Path) -> Controller:
    """Load a controller document from disk.

    Raises:
        PersistenceError: If the file is missing, unreadable or corrupted.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise PersistenceError(f"Controller file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise PersistenceError(f"Controller file {path} is not valid JSON: {e}") from e
    except OSError as e:
        raise PersistenceError(f"Failed to read controller {path}: {e}") from e

    if not isinstance(data, dict):
        raise PersistenceError(f"Controller file {path} is malformed")

    controller = controller_from_dict(data)
    logger.debug(
        "Loaded controller %s: %d parameters, %d layers",
        controller.name,
        len(controller.parameters),
        len(controller.layers),
    )
    return controller


def save_controller(controller: Controller, path: Path) -> None:
    """Write a controller document atomically.

    Raises:
        PersistenceError: If file I/O fails.
    """
    data = controller_to_dict(controller)

    # Atomic write: write to temp, then rename
    temp_path = path.with_suffix(".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        temp_path.replace(path)  # Atomic on POSIX
    except (OSError, TypeError) as e:
        raise PersistenceError(f"Failed to save controller: {e}") from e
    finally:
        # Clean up temp file if it still exists (e.g., if replace() failed)
        try:
            if temp_path.exists():
                temp_path.unlink()
        except OSError:
            pass  # Best effort cleanup, ignore errors


class JsonControllerStore:
    """Writes extracted controllers as JSON documents into a directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def path_for(self, name: str) -> Path:
        return self.output_dir / f"{name}{CONTROLLER_SUFFIX}"

    def save(self, controller: Controller, name: str) -> Path:
        path = self.path_for(name)
        logger.info("Creating new controller at: %s", path)
        save_controller(controller, path)
        return path
