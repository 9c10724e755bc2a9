"""ASCII state machine visualization using phart.

This module converts a StateMachine to a NetworkX DiGraph and renders it
as ASCII art using the phart library.
"""

import logging

import networkx as nx
from phart import ASCIIRenderer, NodeStyle

from fsmsplit.core.constants import ANY_STATE_NAME, LARGE_GRAPH_THRESHOLD
from fsmsplit.core.types import State, StateMachine, Transition

logger = logging.getLogger(__name__)

# Virtual node drawn as the origin of any-state transitions
ANY_STATE_LABEL = f"({ANY_STATE_NAME})"


def _format_state_label(state: State, is_default: bool, highlight: bool = False) -> str:
    """Format a state name: [name] marks the default state, >> a highlight."""
    base = f"[{state.name}]" if is_default else state.name
    if highlight:
        return f">> {base}"
    return base


def _format_conditions(transition: Transition) -> str:
    if not transition.conditions:
        return "exit" if transition.has_exit_time else "-"
    return " & ".join(
        f"{c.parameter} {c.mode.value} {c.threshold:g}" for c in transition.conditions
    )


def state_machine_to_networkx(
    machine: StateMachine,
    highlight_names: set[str] | None = None,
) -> nx.DiGraph:
    """Convert a StateMachine to a NetworkX DiGraph for phart.

    Uses formatted labels as node IDs so phart displays styled labels.
    Any-state transitions start at a virtual ``(Any State)`` node.
    """
    graph_nx = nx.DiGraph()
    highlight_set = highlight_names or set()

    labels: dict[State, str] = {}
    for state in machine.states.values():
        label = _format_state_label(
            state, state is machine.default_state, state.name in highlight_set
        )
        labels[state] = label
        graph_nx.add_node(label, name=state.name)

    if machine.any_state_transitions:
        graph_nx.add_node(ANY_STATE_LABEL, name=ANY_STATE_NAME)
        for transition in machine.any_state_transitions:
            if transition.destination in labels:
                graph_nx.add_edge(
                    ANY_STATE_LABEL,
                    labels[transition.destination],
                    label=_format_conditions(transition),
                )

    for state in machine.states.values():
        for transition in state.transitions:
            if transition.destination in labels:
                graph_nx.add_edge(
                    labels[state],
                    labels[transition.destination],
                    label=_format_conditions(transition),
                )

    return graph_nx


def _format_transitions(machine: StateMachine) -> str:
    lines = ["Transitions:"]
    for transition in machine.any_state_transitions:
        target = transition.destination.name if transition.destination else "?"
        lines.append(f"  {ANY_STATE_LABEL} --{_format_conditions(transition)}--> {target}")
    for state in machine.states.values():
        for transition in state.transitions:
            target = transition.destination.name if transition.destination else "?"
            lines.append(f"  {state.name} --{_format_conditions(transition)}--> {target}")
    if len(lines) == 1:
        return ""
    return "\n".join(lines)


def render_ascii(machine: StateMachine, highlight_names: set[str] | None = None) -> str:
    """Render a StateMachine as ASCII art using phart.

    Args:
        machine: The state machine to render.
        highlight_names: State names to mark with a ">>" prefix.

    Returns:
        ASCII art followed by a transition listing, or a friendly message
        if the machine has no states. When phart cannot lay the graph out,
        the art is replaced by a plain list of states.
    """
    if not machine.states:
        return "No states in this layer."

    parts: list[str] = []

    if len(machine.states) > LARGE_GRAPH_THRESHOLD:
        parts.append(
            f"⚠ Large state machine ({len(machine.states)} states), "
            "the layout may be hard to read."
        )
        parts.append("")

    try:
        nx_graph = state_machine_to_networkx(machine, highlight_names=highlight_names)

        # Use MINIMAL style since labels already carry their markers
        renderer = ASCIIRenderer(nx_graph, node_style=NodeStyle.MINIMAL)
        parts.append(renderer.render().strip())
    except Exception as e:
        logger.warning("Visualization failed: %s", e)
        parts.append("⚠ Could not render state machine visualization.")
        parts.append("States: " + ", ".join(machine.states))

    transitions = _format_transitions(machine)
    if transitions:
        parts.append("")
        parts.append(transitions)

    return "\n".join(parts)
