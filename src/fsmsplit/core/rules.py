"""Root state classification for fsmsplit.

Partitions the states of a layer into ordered, disjoint groups of root
states. Each group is later expanded into everything reachable from its
roots and extracted into its own controller.

Predicates are plain callables taking a State and returning a bool, so
callers can combine the primitives below with their own functions.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from fsmsplit.core.config import RuleConfig
from fsmsplit.core.exceptions import ConfigError
from fsmsplit.core.types import Controller, State, Transition

logger = logging.getLogger(__name__)

StatePredicate = Callable[[State], bool]


def name_startswith(prefix: str) -> StatePredicate:
    """Match states whose name starts with ``prefix``."""

    def predicate(state: State) -> bool:
        return state.name.startswith(prefix)

    return predicate


def name_equals(name: str) -> StatePredicate:
    """Match the state with exactly this name."""

    def predicate(state: State) -> bool:
        return state.name == name

    return predicate


def any_of(*predicates: StatePredicate) -> StatePredicate:
    def predicate(state: State) -> bool:
        return any(p(state) for p in predicates)

    return predicate


def all_of(*predicates: StatePredicate) -> StatePredicate:
    def predicate(state: State) -> bool:
        return all(p(state) for p in predicates)

    return predicate


def find_any_state_transition(controller: Controller, state: State) -> Transition | None:
    """Find the any-state transition entering ``state``.

    Searches the any-state transitions of every layer in layer order.

    Args:
        controller: The controller to search.
        state: The destination state to look for.

    Returns:
        The first matching transition, or None if the state has no
        any-state entry.
    """
    for layer in controller.layers:
        for transition in layer.state_machine.any_state_transitions:
            if transition.destination is state:
                return transition
    return None


def has_any_state_condition(controller: Controller, parameter: str) -> StatePredicate:
    """Match states entered from any state under a condition on ``parameter``.

    A state without an any-state entry simply does not match. An
    undeclared parameter is reported but still evaluated, so it matches
    nothing unless a condition names it anyway.

    Args:
        controller: Controller whose layers hold the any-state transitions.
        parameter: Parameter name the entry condition must reference.

    Returns:
        A predicate over states.
    """
    if not controller.has_parameter(parameter):
        logger.error("This controller does not have parameter named %s", parameter)

    def predicate(state: State) -> bool:
        transition = find_any_state_transition(controller, state)
        if transition is None:
            return False
        return any(c.parameter == parameter for c in transition.conditions)

    return predicate


@dataclass(frozen=True)
class RootRule:
    """A named classification rule.

    Attributes:
        label: Name of the group this rule produces.
        predicate: Decides whether a state is a root of this group.
        requires_any_state: True when matching implies the root has an
            any-state entry that must be carried into the clone.
    """

    label: str
    predicate: StatePredicate
    requires_any_state: bool = False


@dataclass
class RootGroup:
    """Root states selected by one rule, in source order."""

    label: str
    states: list[State] = field(default_factory=list)
    requires_any_state: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.states


def classify_root_states(states: Iterable[State], rules: Sequence[RootRule]) -> list[RootGroup]:
    """Assign states to groups by the first rule that matches.

    Rules are evaluated in order for each state; a state joins the group of
    the first matching rule and is never considered for later rules.

    Args:
        states: Candidate states, typically every state of one layer.
        rules: Classification rules in priority order.

    Returns:
        One group per rule, in rule order. Groups may be empty.
    """
    groups = [RootGroup(label=r.label, requires_any_state=r.requires_any_state) for r in rules]

    for state in states:
        for rule, group in zip(rules, groups, strict=True):
            if rule.predicate(state):
                group.states.append(state)
                break

    for index, group in enumerate(groups):
        if group.is_empty:
            logger.error("Found no root state for group %d (%s)", index, group.label)
        else:
            logger.info(
                "Found root state for group %d (%s): %s",
                index,
                group.label,
                ", ".join(s.name for s in group.states),
            )

    return groups


def build_root_rules(rule_configs: Iterable[RuleConfig], controller: Controller) -> list[RootRule]:
    """Turn configured rules into classification rules for ``controller``.

    Any-state parameter rules also require the roots' any-state entries to
    be copied with them.
    """
    rules = []
    for config in rule_configs:
        if config.any_state_parameter is not None:
            predicate = has_any_state_condition(controller, config.any_state_parameter)
            rules.append(RootRule(config.label, predicate, requires_any_state=True))
        elif config.prefix is not None:
            rules.append(RootRule(config.label, name_startswith(config.prefix)))
        elif config.name is not None:
            rules.append(RootRule(config.label, name_equals(config.name)))
        else:
            raise ConfigError(f"Rule '{config.label}' has nothing to match on")
    return rules
