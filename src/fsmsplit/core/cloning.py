"""State machine cloning for fsmsplit.

Copies a subset of states, with the transitions between them, from one
state machine into another. Copied states are re-linked by name, so the
target never references an object owned by the source apart from the
opaque motion and avatar mask references.

Known fidelity limitation: behaviours are re-created from their type name
only. The clone gets fresh, default-valued behaviours and any properties
set on the source behaviours are not carried over.
"""

import logging
from collections.abc import Collection

from fsmsplit.core.constants import DANGLING_DROP, DANGLING_FAIL, DANGLING_POLICIES
from fsmsplit.core.exceptions import DanglingTransitionError, InputConsistencyError
from fsmsplit.core.types import Controller, Layer, State, StateMachine, Transition

logger = logging.getLogger(__name__)


def copy_state(source: State, target: State) -> None:
    """Copy every attribute of ``source`` except its name and transitions.

    Behaviours are re-instantiated by type, without their properties.
    """
    target.tag = source.tag
    target.motion = source.motion
    target.speed = source.speed
    target.speed_parameter_active = source.speed_parameter_active
    target.speed_parameter = source.speed_parameter
    target.time_parameter_active = source.time_parameter_active
    target.time_parameter = source.time_parameter
    target.mirror = source.mirror
    target.mirror_parameter_active = source.mirror_parameter_active
    target.mirror_parameter = source.mirror_parameter
    target.cycle_offset = source.cycle_offset
    target.cycle_offset_parameter_active = source.cycle_offset_parameter_active
    target.cycle_offset_parameter = source.cycle_offset_parameter
    target.ik_on_feet = source.ik_on_feet
    target.write_default_values = source.write_default_values

    for behaviour in source.behaviours:
        target.add_behaviour(behaviour.type_name)


def copy_transition(source: Transition, target: Transition) -> None:
    """Copy every attribute of ``source`` except its destination.

    Conditions are copied verbatim; parameter names are not checked
    against the target controller.
    """
    target.name = source.name
    target.has_exit_time = source.has_exit_time
    target.exit_time = source.exit_time
    target.has_fixed_duration = source.has_fixed_duration
    target.duration = source.duration
    target.offset = source.offset
    target.interruption_source = source.interruption_source
    target.ordered_interruption = source.ordered_interruption

    for condition in source.conditions:
        target.add_condition(condition.mode, condition.threshold, condition.parameter)


def _copy_any_state_transitions(
    source: StateMachine,
    target: StateMachine,
    name_to_new_state: dict[str, State],
    members: set[State],
    root_states: Collection[State] | None,
) -> None:
    if root_states is not None:
        outside = [r.name for r in root_states if r not in members]
        if outside:
            raise InputConsistencyError(
                f"Root states are not part of the copied states: {', '.join(outside)}"
            )
        with_entry = {t.destination for t in source.any_state_transitions}
        missing = [r.name for r in root_states if r not in with_entry]
        if missing:
            raise InputConsistencyError(
                "Root states were classified by an any-state transition "
                f"but have none in this layer: {', '.join(missing)}"
            )

    for transition in source.any_state_transitions:
        destination = transition.destination
        if destination is None or destination not in members:
            continue
        new_transition = target.add_any_state_transition(name_to_new_state[destination.name])
        copy_transition(transition, new_transition)


def copy_states_and_transitions(
    source: StateMachine,
    target: StateMachine,
    states: Collection[State],
    root_states: Collection[State] | None = None,
    dangling_policy: str = DANGLING_DROP,
) -> dict[str, State]:
    """Copy states and the transitions between them into ``target``.

    Args:
        source: State machine owning ``states``.
        target: State machine to populate; must not already contain states
            with the same names.
        states: The states to copy.
        root_states: When given, every one of these roots must be a copied
            state with at least one any-state entry in ``source``.
            Any-state transitions entering any copied state are copied
            either way.
        dangling_policy: What to do with a concrete transition whose
            destination is not copied: "drop" logs and skips it, "fail"
            raises.

    Returns:
        Mapping of state name to the new state in ``target``.

    Raises:
        InputConsistencyError: If a root has no any-state entry.
        DanglingTransitionError: If a transition leaves the subset under
            the "fail" policy.
        ValueError: If ``dangling_policy`` is unknown.
    """
    if dangling_policy not in DANGLING_POLICIES:
        raise ValueError(f"Unknown dangling transition policy '{dangling_policy}'")

    members = set(states)
    name_to_new_state: dict[str, State] = {}

    for state in states:
        new_state = target.add_state(state.name)
        copy_state(state, new_state)
        if source.default_state is state:
            target.default_state = new_state
        name_to_new_state[state.name] = new_state

    _copy_any_state_transitions(source, target, name_to_new_state, members, root_states)

    for state in states:
        new_state = name_to_new_state[state.name]
        for transition in state.transitions:
            destination = transition.destination
            if destination is None or destination not in members:
                target_name = destination.name if destination is not None else "<none>"
                if dangling_policy == DANGLING_FAIL:
                    raise DanglingTransitionError(
                        f"Transition {state.name} -> {target_name} leaves the copied states"
                    )
                logger.warning(
                    "Dropping transition %s -> %s: destination not copied",
                    state.name,
                    target_name,
                )
                continue
            new_transition = new_state.add_transition(name_to_new_state[destination.name])
            copy_transition(transition, new_transition)

    return name_to_new_state


def copy_layer(
    source: Layer,
    target: Layer,
    copy_states_and_transition: bool,
    dangling_policy: str = DANGLING_DROP,
) -> None:
    """Copy layer settings, and optionally its whole state machine.

    Args:
        source: Layer to copy from.
        target: Layer to copy into.
        copy_states_and_transition: Also copy every state of the layer.
        dangling_policy: Passed through to the state copy.
    """
    target.name = source.name
    target.default_weight = source.default_weight
    target.avatar_mask = source.avatar_mask
    target.blending_mode = source.blending_mode
    target.ik_pass = source.ik_pass
    target.synced_layer_index = source.synced_layer_index
    target.synced_layer_affects_timing = source.synced_layer_affects_timing

    if copy_states_and_transition:
        source_states = list(source.state_machine.states.values())
        copy_states_and_transitions(
            source.state_machine,
            target.state_machine,
            source_states,
            dangling_policy=dangling_policy,
        )


def clone_controller(
    source: Controller,
    name: str,
    base_layer: Layer,
    states: Collection[State],
    carry_layer: Layer | None = None,
    root_states: Collection[State] | None = None,
    dangling_policy: str = DANGLING_DROP,
) -> Controller:
    """Build a new controller holding a subset of one layer.

    The new controller gets the source parameters, a copy of
    ``base_layer`` restricted to ``states``, and, when given, a full copy
    of ``carry_layer``.

    Args:
        source: Controller the layers belong to.
        name: Name of the new controller.
        base_layer: The partitioned layer.
        states: States of ``base_layer`` to copy.
        carry_layer: A layer copied wholesale, or None to skip.
        root_states: See ``copy_states_and_transitions``.
        dangling_policy: See ``copy_states_and_transitions``.

    Returns:
        The populated controller. It shares no mutable state with ``source``.
    """
    controller = Controller(name=name)
    for parameter in source.parameters:
        controller.add_parameter(parameter.name, parameter.type)

    logger.debug("Copying base layer %s (%d states)", base_layer.name, len(states))
    new_base_layer = controller.add_layer(base_layer.name)
    copy_layer(base_layer, new_base_layer, False)
    copy_states_and_transitions(
        base_layer.state_machine,
        new_base_layer.state_machine,
        states,
        root_states=root_states,
        dangling_policy=dangling_policy,
    )

    if carry_layer is not None:
        logger.debug("Copying carry layer %s", carry_layer.name)
        new_carry_layer = controller.add_layer(carry_layer.name)
        copy_layer(carry_layer, new_carry_layer, True, dangling_policy=dangling_policy)

    return controller
