"""Controller splitting for fsmsplit.

Sequences the whole extraction: classify root states, expand each group to
everything reachable from its roots, check that no two groups share a
state, clone each group into its own controller, hand it to the sink and,
finally, prune the extracted states from the source layer.

Every phase completes before the next one starts. A group whose clone
fails is reported and left in the source; the other groups proceed.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from fsmsplit.core.cloning import clone_controller
from fsmsplit.core.constants import (
    BASE_LAYER_NAME,
    CARRY_LAYER_NAME,
    DANGLING_DROP,
    DEFAULT_NAME_TEMPLATE,
)
from fsmsplit.core.exceptions import CloneError, MissingElementError, OverlappingGroupsError
from fsmsplit.core.graph_ops import collect_group_states
from fsmsplit.core.persistence import ControllerSink
from fsmsplit.core.rules import RootGroup, RootRule, classify_root_states
from fsmsplit.core.types import Controller, Layer, State

logger = logging.getLogger(__name__)

GroupStatus = Literal["empty", "planned", "extracted", "failed"]


@dataclass
class GroupResult:
    """Outcome of extracting one group.

    Attributes:
        index: Position of the group in classification order.
        label: Label of the rule that produced the group.
        roots: Names of the root states.
        states: Names of every state extracted with the roots.
        output_name: Name given to the new controller.
        path: Where the sink stored it, if it reported a location.
        error: Why the group was aborted, if it was.
    """

    index: int
    label: str
    roots: list[str] = field(default_factory=list)
    states: list[str] = field(default_factory=list)
    output_name: str | None = None
    path: Path | None = None
    error: str | None = None
    persisted: bool = False

    @property
    def status(self) -> GroupStatus:
        if not self.states:
            return "empty"
        if self.error is not None:
            return "failed"
        if self.persisted:
            return "extracted"
        return "planned"


@dataclass
class SplitReport:
    """Summary of a split run."""

    controller_name: str
    groups: list[GroupResult] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[GroupResult]:
        return [g for g in self.groups if g.status == "failed"]

    @property
    def extracted(self) -> list[GroupResult]:
        return [g for g in self.groups if g.status == "extracted"]


def _check_disjoint(groups: Sequence[RootGroup], expanded: Sequence[list[State]]) -> None:
    owner: dict[State, int] = {}
    overlaps: list[str] = []
    for index, (group, states) in enumerate(zip(groups, expanded, strict=True)):
        for state in states:
            previous = owner.setdefault(state, index)
            if previous != index:
                first = groups[previous]
                overlaps.append(
                    f"{state.name} (group {previous} {first.label}, group {index} {group.label})"
                )
    if overlaps:
        raise OverlappingGroupsError(
            "States are reachable from more than one group: " + ", ".join(overlaps)
        )


def _extract_group(
    controller: Controller,
    base_layer: Layer,
    carry_layer: Layer | None,
    group: RootGroup,
    states: list[State],
    result: GroupResult,
    sink: ControllerSink | None,
    name_template: str,
    dangling_policy: str,
) -> bool:
    """Clone one group and hand it to the sink, recording the outcome on ``result``.

    Returns:
        True when the group was persisted and its states may be pruned.
    """
    if group.is_empty:
        logger.warning("Skipping group %d (%s): no root state", result.index, group.label)
        return False
    if not states:
        logger.warning(
            "Skipping group %d (%s): its roots reach no extractable state",
            result.index,
            group.label,
        )
        return False

    logger.info("Found %d states in group %d (%s)", len(states), result.index, group.label)
    result.output_name = name_template.format(
        controller=controller.name, index=result.index, label=group.label
    )

    try:
        new_controller = clone_controller(
            controller,
            result.output_name,
            base_layer,
            states,
            carry_layer=carry_layer,
            root_states=group.states if group.requires_any_state else None,
            dangling_policy=dangling_policy,
        )
    except CloneError as e:
        logger.error("Aborting group %d (%s): %s", result.index, group.label, e)
        result.error = str(e)
        return False

    if sink is None:
        return False

    result.path = sink.save(new_controller, result.output_name)
    result.persisted = True
    logger.info("Group %d (%s) process completed", result.index, group.label)
    return True


def split_controller(
    controller: Controller,
    rules: Sequence[RootRule],
    sink: ControllerSink | None = None,
    prune: bool = True,
    base_layer_name: str = BASE_LAYER_NAME,
    carry_layer_name: str | None = CARRY_LAYER_NAME,
    name_template: str = DEFAULT_NAME_TEMPLATE,
    dangling_policy: str = DANGLING_DROP,
    progress: Callable[[GroupResult], None] | None = None,
) -> SplitReport:
    """Extract every classified group of a layer into its own controller.

    Args:
        controller: The source controller. Mutated only when pruning.
        rules: Root classification rules in priority order.
        sink: Receives each new controller. None performs a dry run: groups
            are cloned to validate them but nothing is stored or pruned.
        prune: Remove extracted states from the source layer.
        base_layer_name: Name of the layer to partition.
        carry_layer_name: Name of a layer copied whole into every new
            controller, or None.
        name_template: Format string for new controller names; receives
            ``controller``, ``index`` and ``label``.
        dangling_policy: "drop" or "fail" for transitions leaving a group.
        progress: Called with each group's result as soon as the group is
            handled, before pruning.

    Returns:
        A report of every group.

    Raises:
        MissingElementError: If the base layer does not exist.
        OverlappingGroupsError: If two groups reach a common state.
    """
    base_layer = controller.get_layer(base_layer_name)
    if base_layer is None:
        raise MissingElementError(f"Cannot find layer '{base_layer_name}'")

    carry_layer = None
    if carry_layer_name is not None:
        carry_layer = controller.get_layer(carry_layer_name)
        if carry_layer is None:
            logger.warning("Carry layer '%s' not found, skipping its copy", carry_layer_name)

    machine = base_layer.state_machine
    logger.info(
        "States of layer %s: %s", base_layer.name, ", ".join(machine.states) or "(none)"
    )

    groups = classify_root_states(list(machine.states.values()), rules)
    expanded = [collect_group_states(group.states) for group in groups]
    _check_disjoint(groups, expanded)

    report = SplitReport(controller_name=controller.name)
    to_prune: list[State] = []

    for index, (group, states) in enumerate(zip(groups, expanded, strict=True)):
        result = GroupResult(
            index=index,
            label=group.label,
            roots=[s.name for s in group.states],
            states=[s.name for s in states],
        )
        report.groups.append(result)

        if _extract_group(
            controller,
            base_layer,
            carry_layer,
            group,
            states,
            result,
            sink,
            name_template,
            dangling_policy,
        ):
            to_prune.extend(states)
        if progress is not None:
            progress(result)

    if prune and to_prune:
        logger.info("Deleting %d states", len(to_prune))
        for state in to_prune:
            machine.remove_state(state)
            report.pruned.append(state.name)

    return report
