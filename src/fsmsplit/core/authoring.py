"""Authoring helpers for fsmsplit.

Small editing operations that sit beside the splitter: a flat batch
rewrite of transition timings, and two explicit session objects that
remember progress between calls (a pending transition source and the next
trigger to attach).
"""

import logging
from collections.abc import Sequence

from fsmsplit.core.constants import (
    DEFAULT_TRIGGERS,
    REWRITE_DURATION,
    REWRITE_EXIT_TIME,
    REWRITE_OFFSET,
)
from fsmsplit.core.exceptions import MissingElementError, SelectionError
from fsmsplit.core.types import (
    ConditionMode,
    Controller,
    ParameterType,
    State,
    StateMachine,
    Transition,
)

logger = logging.getLogger(__name__)


def rewrite_transition_timings(
    machine: StateMachine,
    exit_time: float = REWRITE_EXIT_TIME,
    duration: float = REWRITE_DURATION,
    offset: float = REWRITE_OFFSET,
) -> int:
    """Set exit time, duration and offset on every transition of a machine.

    Covers the default state's transitions, the any-state transitions and
    the transitions of every state.

    Returns:
        Number of distinct transitions rewritten.
    """
    transitions: dict[Transition, None] = {}
    if machine.default_state is not None:
        transitions.update(dict.fromkeys(machine.default_state.transitions))
    else:
        logger.warning("State machine has no default state")
    transitions.update(dict.fromkeys(machine.any_state_transitions))
    for state in machine.states.values():
        transitions.update(dict.fromkeys(state.transitions))

    for transition in transitions:
        transition.exit_time = exit_time
        transition.duration = duration
        transition.offset = offset

    return len(transitions)


class TransitionLinker:
    """Creates transitions in two steps: mark the sources, then link targets.

    A link is either one-to-many or many-to-one. After every successful
    link the mark is cleared.
    """

    def __init__(self) -> None:
        self._start_states: list[State] | None = None

    @property
    def has_mark(self) -> bool:
        return self._start_states is not None

    def mark(self, states: Sequence[State]) -> None:
        """Remember ``states`` as the sources of the next link."""
        if not states:
            raise SelectionError("No states selected")
        self._start_states = list(states)
        logger.debug("Start states marked: %s", ", ".join(s.name for s in states))

    def link(self, states: Sequence[State]) -> list[Transition]:
        """Create transitions from the marked states to ``states``.

        Raises:
            SelectionError: If nothing is marked, ``states`` is empty, or
                both sides hold several states. The last case also clears
                the mark.
        """
        if not states:
            raise SelectionError("No states selected")
        if self._start_states is None:
            raise SelectionError("No start states marked")

        if len(states) == 1:
            target = states[0]
            created = [start.add_transition(target) for start in self._start_states]
        elif len(self._start_states) == 1:
            start = self._start_states[0]
            created = [start.add_transition(target) for target in states]
        else:
            self._start_states = None
            raise SelectionError(
                "Cannot create transitions from multiple states to multiple states"
            )

        self._start_states = None
        return created

    def forget(self) -> None:
        self._start_states = None


class TriggerSession:
    """Attaches a fixed sequence of trigger conditions, one per call."""

    def __init__(self, controller: Controller, triggers: Sequence[str] = DEFAULT_TRIGGERS) -> None:
        self.controller = controller
        self.triggers = tuple(triggers)
        self.index = 0

    def add_parameters(self) -> list[str]:
        """Declare every trigger on the controller.

        Returns:
            Names of the parameters that were added; existing ones are kept.
        """
        added = []
        for name in self.triggers:
            if self.controller.has_parameter(name):
                logger.debug("Parameter %s already exists", name)
                continue
            self.controller.add_parameter(name, ParameterType.TRIGGER)
            added.append(name)
        return added

    def _is_trigger(self, name: str) -> bool:
        return any(
            p.name == name and p.type is ParameterType.TRIGGER for p in self.controller.parameters
        )

    def add_next_trigger(self, transitions: Sequence[Transition]) -> str:
        """Add the next trigger as a condition on each transition.

        Returns:
            The trigger that was added.

        Raises:
            SelectionError: If all triggers were used or no transition was given.
            MissingElementError: If the trigger is not a declared trigger parameter.
        """
        if self.index >= len(self.triggers):
            raise SelectionError("All triggers added")

        trigger = self.triggers[self.index]
        if not self._is_trigger(trigger):
            raise MissingElementError(f"Trigger {trigger} does not exist")
        if not transitions:
            raise SelectionError("No transition is selected")

        for transition in transitions:
            transition.add_condition(ConditionMode.IF, 0.0, trigger)

        self.index += 1
        logger.debug("Trigger %s added to %d transitions", trigger, len(transitions))
        return trigger

    def forget(self) -> None:
        self.index = 0
