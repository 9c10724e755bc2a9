"""Graph operations for fsmsplit.

Pure traversal functions over state machines.
This module must NOT import from cli/ or viz/ - it's pure graph logic.
"""

import logging
from collections import deque
from collections.abc import Iterable

from fsmsplit.core.constants import ANY_STATE_NAME
from fsmsplit.core.types import State

logger = logging.getLogger(__name__)


def collect_reachable_states(root: State) -> list[State]:
    """Collect every state reachable from a root through concrete transitions.

    Performs BFS over the outgoing transitions of visited states. Any-state
    transitions are not followed. Destinations that are missing or carry
    the reserved any-state name are never visited.

    Args:
        root: The state to start from.

    Returns:
        The reachable states, root first, in discovery order. Each state
        appears once. Empty if the root itself carries the reserved name.
    """
    if root.name == ANY_STATE_NAME:
        logger.warning("Refusing to traverse from reserved state '%s'", ANY_STATE_NAME)
        return []

    visited: set[State] = {root}
    reachable: list[State] = []
    queue: deque[State] = deque([root])

    while queue:
        current = queue.popleft()
        reachable.append(current)

        for transition in current.transitions:
            destination = transition.destination
            if destination is None or destination in visited:
                continue
            if destination.name == ANY_STATE_NAME:
                continue
            visited.add(destination)
            queue.append(destination)

    logger.debug(
        "Found %d states connected to root state %s: %s",
        len(reachable),
        root.name,
        ", ".join(s.name for s in reachable),
    )
    return reachable


def collect_group_states(roots: Iterable[State]) -> list[State]:
    """Union the reachable sets of several roots.

    Args:
        roots: Root states of one group.

    Returns:
        Every state reachable from any root, without duplicates, ordered by
        first discovery.
    """
    # dict keeps first-seen order while deduplicating by identity
    union: dict[State, None] = {}
    for root in roots:
        for state in collect_reachable_states(root):
            union.setdefault(state, None)
    return list(union)
