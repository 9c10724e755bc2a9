"""Fuzzy state matching utilities for fsmsplit.

Provides fuzzy lookup of states by name with suggestions when no exact
match is found. Uses RapidFuzz for fuzzy string matching.
"""

from dataclasses import dataclass, field

from rapidfuzz import fuzz, process

from fsmsplit.core.types import State, StateMachine

# Minimum fuzzy match score (0-100)
FUZZY_THRESHOLD = 70

# Number of suggestions to show when no match found
MAX_SUGGESTIONS = 5


@dataclass
class MatchResult:
    """Result of a fuzzy state match.

    Attributes:
        match: The matched state, or None if no match found.
        is_exact: True if the match was exact (not fuzzy).
        score: The fuzzy match score (0-100), or 100 for exact match.
        suggestions: Suggested state names when no single match was found.
    """

    match: State | None = None
    is_exact: bool = False
    score: float = 0.0
    suggestions: list[str] = field(default_factory=list)


def fuzzy_find_state(
    machine: StateMachine,
    query: str,
    threshold: int = FUZZY_THRESHOLD,
) -> MatchResult:
    """Find a state by name, exactly first and then fuzzily.

    Exact matching is case-insensitive. A fuzzy match is only accepted when
    one candidate clearly outscores the rest; otherwise the close
    candidates are returned as suggestions.

    Args:
        machine: The state machine to search.
        query: The state name to look for.
        threshold: Minimum fuzzy match score (0-100).

    Returns:
        MatchResult with the matched state or suggestions.
    """
    if not machine.states:
        return MatchResult()

    query_lower = query.lower()
    for state in machine.states.values():
        if state.name.lower() == query_lower:
            return MatchResult(match=state, is_exact=True, score=100.0)

    names = list(machine.states)
    matches = process.extract(
        query,
        names,
        scorer=fuzz.WRatio,
        score_cutoff=threshold,
        limit=MAX_SUGGESTIONS,
    )

    if not matches:
        all_matches = process.extract(query, names, scorer=fuzz.WRatio, limit=MAX_SUGGESTIONS)
        return MatchResult(suggestions=[m[0] for m in all_matches])

    # Ambiguous when several candidates score within 10 points of the best
    top_score = matches[0][1]
    close = [m[0] for m in matches if m[1] >= top_score - 10]
    if len(close) > 1:
        return MatchResult(suggestions=close, score=top_score)

    best_name, best_score, _ = matches[0]
    return MatchResult(match=machine.states[best_name], score=best_score)


def format_state_suggestions(suggestions: list[str], max_show: int = MAX_SUGGESTIONS) -> str:
    """Format state suggestions for display in error messages."""
    if not suggestions:
        return "No states available."

    shown = suggestions[:max_show]
    formatted = "\n".join(f"  - {s}" for s in shown)

    if len(suggestions) > max_show:
        formatted += f"\n  ... and {len(suggestions) - max_show} more"

    return f"Did you mean one of these?\n{formatted}"
