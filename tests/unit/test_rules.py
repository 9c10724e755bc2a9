"""Tests for root state classification."""

import logging

import pytest

from fsmsplit.core.config import DEFAULT_RULES, RuleConfig
from fsmsplit.core.exceptions import ConfigError
from fsmsplit.core.rules import (
    RootRule,
    all_of,
    any_of,
    build_root_rules,
    classify_root_states,
    find_any_state_transition,
    has_any_state_condition,
    name_equals,
    name_startswith,
)
from fsmsplit.core.types import ConditionMode, Controller, Layer


class TestPredicates:
    """Tests for the predicate primitives and combinators."""

    def test_name_predicates(self, base_layer: Layer) -> None:
        """Prefix and exact-name predicates match on state names."""
        walk = base_layer.state_machine.states["Walk"]

        assert name_startswith("Wa")(walk)
        assert not name_startswith("Run")(walk)
        assert name_equals("Walk")(walk)
        assert not name_equals("Wal")(walk)

    def test_combinators(self, base_layer: Layer) -> None:
        """any_of and all_of combine predicates."""
        run = base_layer.state_machine.states["Run"]

        assert any_of(name_equals("Idle"), name_startswith("R"))(run)
        assert not all_of(name_equals("Idle"), name_startswith("R"))(run)

    def test_any_state_condition_matches_entered_state(self, locomotion: Controller) -> None:
        """Idle has an any-state entry conditioned on Enter."""
        machine = locomotion.layers[0].state_machine
        predicate = has_any_state_condition(locomotion, "Enter")

        assert predicate(machine.states["Idle"])
        assert not predicate(machine.states["Walk"])

    def test_any_state_condition_on_other_parameter_is_false(
        self, locomotion: Controller
    ) -> None:
        """A state entered under a different parameter does not match."""
        idle = locomotion.layers[0].state_machine.states["Idle"]

        assert not has_any_state_condition(locomotion, "Speed")(idle)

    def test_undeclared_parameter_is_reported(
        self, locomotion: Controller, caplog: pytest.LogCaptureFixture
    ) -> None:
        """An unknown parameter logs an error but does not raise."""
        with caplog.at_level(logging.ERROR):
            predicate = has_any_state_condition(locomotion, "Missing")

        assert "does not have parameter named Missing" in caplog.text
        assert not predicate(locomotion.layers[0].state_machine.states["Idle"])

    def test_find_any_state_transition_searches_all_layers(
        self, locomotion: Controller
    ) -> None:
        """Any-state entries stored on another layer are found too."""
        idle = locomotion.layers[0].state_machine.states["Idle"]
        carry = locomotion.layers[1].state_machine
        locomotion.layers[0].state_machine.any_state_transitions.clear()
        foreign = carry.add_any_state_transition(idle)
        foreign.add_condition(ConditionMode.IF, 0.0, "Enter")

        assert find_any_state_transition(locomotion, idle) is foreign
        assert has_any_state_condition(locomotion, "Enter")(idle)

    def test_find_any_state_transition_none_when_absent(self, locomotion: Controller) -> None:
        attack = locomotion.layers[0].state_machine.states["Attack"]

        assert find_any_state_transition(locomotion, attack) is None


class TestClassifyRootStates:
    """Tests for classify_root_states()."""

    def test_scenario_groups_idle_by_enter(self, locomotion: Controller) -> None:
        """Classifying by the Enter any-state condition yields {Idle}."""
        states = list(locomotion.layers[0].state_machine.states.values())
        rule = RootRule("enter", has_any_state_condition(locomotion, "Enter"), True)

        groups = classify_root_states(states, [rule])

        assert len(groups) == 1
        assert [s.name for s in groups[0].states] == ["Idle"]
        assert groups[0].requires_any_state

    def test_first_matching_rule_wins(self, base_layer: Layer) -> None:
        """A state matching two rules only joins the first group."""
        states = list(base_layer.state_machine.states.values())
        rules = [
            RootRule("r-names", name_startswith("R")),
            RootRule("run", name_equals("Run")),
        ]

        groups = classify_root_states(states, rules)

        assert [s.name for s in groups[0].states] == ["Run"]
        assert groups[1].states == []

    def test_groups_are_disjoint(self, two_groups: Controller) -> None:
        """No state appears in more than one group."""
        states = list(two_groups.layers[0].state_machine.states.values())
        rules = build_root_rules(DEFAULT_RULES, two_groups)
        rules.append(RootRule("everything", lambda state: True))

        groups = classify_root_states(states, rules)

        seen: list[str] = [s.name for g in groups for s in g.states]
        assert len(seen) == len(set(seen)), f"Duplicate assignment in {seen}"
        assert sorted(seen) == sorted(two_groups.layers[0].state_machine.states)

    def test_empty_group_is_diagnosed_not_raised(
        self, base_layer: Layer, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A rule matching nothing yields an empty group and a log entry."""
        states = list(base_layer.state_machine.states.values())

        with caplog.at_level(logging.ERROR):
            groups = classify_root_states(states, [RootRule("team", name_startswith("Team"))])

        assert groups[0].is_empty
        assert "Found no root state for group 0" in caplog.text


class TestBuildRootRules:
    """Tests for turning configured rules into predicates."""

    def test_default_rules_classify_two_groups(self, two_groups: Controller) -> None:
        """The default rules pick Intro, then TeamA and TeamB."""
        states = list(two_groups.layers[0].state_machine.states.values())
        rules = build_root_rules(DEFAULT_RULES, two_groups)

        groups = classify_root_states(states, rules)

        assert [g.label for g in groups] == ["enter-state", "team"]
        assert [s.name for s in groups[0].states] == ["Intro"]
        assert [s.name for s in groups[1].states] == ["TeamA", "TeamB"]
        assert groups[0].requires_any_state
        assert not groups[1].requires_any_state

    def test_exact_name_rule(self, two_groups: Controller) -> None:
        rules = build_root_rules([RuleConfig(label="lobby", name="Lobby")], two_groups)
        lobby = two_groups.layers[0].state_machine.states["Lobby"]

        assert rules[0].predicate(lobby)

    def test_rule_without_matcher_rejected(self, two_groups: Controller) -> None:
        with pytest.raises(ConfigError, match="nothing to match"):
            build_root_rules([RuleConfig(label="bad")], two_groups)
