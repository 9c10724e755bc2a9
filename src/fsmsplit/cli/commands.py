"""CLI commands for fsmsplit."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fsmsplit import __version__
from fsmsplit.cli.verbose import get_verbose_logger
from fsmsplit.core.config import FsmSplitConfig, get_config_path, load_config, write_default_config
from fsmsplit.core.constants import (
    ANY_STATE_NAME,
    EXIT_CONFIG_ERROR,
    EXIT_INTERNAL_ERROR,
    EXIT_PARTIAL_SPLIT,
    EXIT_SUCCESS,
    EXIT_USER_ERROR,
)
from fsmsplit.core.exceptions import (
    ConfigError,
    MissingElementError,
    OverlappingGroupsError,
    PersistenceError,
    SelectionError,
)
from fsmsplit.core.matching import format_state_suggestions, fuzzy_find_state
from fsmsplit.core.persistence import JsonControllerStore, load_controller, save_controller
from fsmsplit.core.splitter import SplitReport
from fsmsplit.core.types import Controller, Layer, State, Transition
from fsmsplit.viz import render_ascii

logger = logging.getLogger(__name__)
console = Console()
error_console = Console(stderr=True)

CONTROLLER_ARGUMENT = click.Path(exists=True, dir_okay=False, path_type=Path)

STATUS_STYLES: dict[str, str] = {
    "extracted": "green",
    "planned": "cyan",
    "empty": "dim",
    "failed": "red",
}


def _configure_logging(debug: bool) -> None:
    """Configure logging levels based on debug flag."""
    if debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


def _get_config(ctx: click.Context) -> FsmSplitConfig:
    """Load configuration, exiting with EXIT_CONFIG_ERROR when it is invalid."""
    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        error_console.print(f"[red]Config error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_CONFIG_ERROR)


def _get_layer(controller: Controller, name: str | None) -> Layer:
    """Return the named layer, or the first layer when no name is given."""
    if name is None:
        if not controller.layers:
            raise MissingElementError(f"Controller '{controller.name}' has no layers")
        return controller.layers[0]
    layer = controller.get_layer(name)
    if layer is None:
        available = ", ".join(candidate.name for candidate in controller.layers) or "(none)"
        raise MissingElementError(f"Cannot find layer '{name}'. Available layers: {available}")
    return layer


def _get_states(layer: Layer, names: tuple[str, ...]) -> list[State]:
    states = []
    for name in names:
        state = layer.state_machine.get_state(name)
        if state is None:
            raise SelectionError(f"State '{name}' not found in layer '{layer.name}'")
        states.append(state)
    return states


def _get_transitions(layer: Layer, selection: str) -> list[Transition]:
    """Resolve "Source->Destination" pairs, comma separated, to transitions.

    The source may be the any-state origin to select any-state transitions.
    Every transition between a matched pair is selected.
    """
    machine = layer.state_machine
    selected: list[Transition] = []
    for pair in selection.split(","):
        source_name, arrow, destination_name = pair.partition("->")
        source_name, destination_name = source_name.strip(), destination_name.strip()
        if not arrow or not source_name or not destination_name:
            raise SelectionError(
                f"Invalid transition '{pair.strip()}', expected Source->Destination"
            )

        if source_name == ANY_STATE_NAME:
            candidates = machine.any_state_transitions
        else:
            candidates = _get_states(layer, (source_name,))[0].transitions
        matches = [
            t
            for t in candidates
            if t.destination is not None and t.destination.name == destination_name
        ]
        if not matches:
            raise SelectionError(
                f"No transition {source_name} -> {destination_name} in layer '{layer.name}'"
            )
        selected.extend(matches)
    return selected


def display_split_report(report: SplitReport, target_console: Console | None = None) -> None:
    """Display a table with one row per extraction group.

    Args:
        report: The split report to display.
        target_console: Optional Rich console (defaults to module console).
    """
    output_console = target_console if target_console is not None else console

    table = Table(title=f"Split of {escape(report.controller_name)}")
    table.add_column("#", justify="right")
    table.add_column("Group")
    table.add_column("Roots")
    table.add_column("States", justify="right")
    table.add_column("Output")
    table.add_column("Status")

    for group in report.groups:
        style = STATUS_STYLES.get(group.status, "")
        output = str(group.path) if group.path else (group.output_name or "-")
        table.add_row(
            str(group.index),
            escape(group.label),
            escape(", ".join(group.roots)) or "-",
            str(len(group.states)),
            escape(output),
            f"[{style}]{group.status}[/{style}]",
        )
    output_console.print(table)

    for group in report.failed:
        label = escape(group.label)
        output_console.print(
            f"[red]✗[/red] Group {group.index} ({label}): {escape(group.error or '')}"
        )


@click.group()
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging output")
@click.option("--verbose", "-v", is_flag=True, help="Show timed progress on stderr")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (defaults to ~/.config/fsmsplit/config.toml)",
)
@click.version_option(version=__version__, prog_name="fsmsplit")
@click.pass_context
def main(ctx: click.Context, debug: bool, verbose: bool, config_path: Path | None) -> None:
    """fsmsplit - split state machine controllers.

    Extracts the states reachable from classified root states into new,
    self-contained controllers and prunes them from the source.

    Example: fsmsplit split hero.json
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    _configure_logging(debug)


@main.command()
@click.argument("controller_path", type=CONTROLLER_ARGUMENT)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for the new controllers (defaults to config output_dir).",
)
@click.option(
    "--prune/--keep-source",
    default=None,
    help="Remove extracted states from the source controller.",
)
@click.option("--dry-run", is_flag=True, help="Classify and clone without writing anything.")
@click.pass_context
def split(
    ctx: click.Context,
    controller_path: Path,
    output_dir: Path | None,
    prune: bool | None,
    dry_run: bool,
) -> None:
    """Split a controller into one controller per root group.

    CONTROLLER_PATH is a controller JSON document. Root groups, layers and
    naming come from the config file.

    Examples:
        fsmsplit split hero.json                 # Extract and prune the source
        fsmsplit split hero.json --keep-source   # Leave the source untouched
        fsmsplit split hero.json --dry-run       # Show the groups only
    """
    from fsmsplit.core.rules import build_root_rules
    from fsmsplit.core.splitter import split_controller

    config = _get_config(ctx)
    verbose = get_verbose_logger(ctx)

    if prune is None:
        prune = config.prune_source
    if output_dir is None:
        output_dir = Path(config.output_dir)

    try:
        with verbose.step("load controller") as step:
            controller = load_controller(controller_path)
            step.result = f"{len(controller.layers)} layers"

        rules = build_root_rules(config.rules, controller)
        sink = None if dry_run else JsonControllerStore(output_dir)

        with verbose.step("split") as step:
            report = split_controller(
                controller,
                rules,
                sink=sink,
                prune=prune,
                base_layer_name=config.base_layer,
                carry_layer_name=config.carry_layer or None,
                name_template=config.name_template,
                dangling_policy=config.dangling_policy,
                progress=verbose.group,
            )
            step.result = f"{len(report.extracted)} controllers written"

        display_split_report(report)

        if report.pruned:
            with verbose.step("save source") as step:
                save_controller(controller, controller_path)
                step.result = f"{len(report.pruned)} states removed"
            console.print(
                f"[green]✓[/green] Removed {len(report.pruned)} states from "
                f"{escape(str(controller_path))}"
            )
        elif dry_run:
            console.print("[dim]Dry run: nothing was written.[/dim]")

        if report.failed:
            raise SystemExit(EXIT_PARTIAL_SPLIT)
        raise SystemExit(EXIT_SUCCESS)

    except (MissingElementError, OverlappingGroupsError) as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_USER_ERROR)
    except ConfigError as e:
        error_console.print(f"[red]Config error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_CONFIG_ERROR)
    except PersistenceError as e:
        logger.exception("Persistence failed")
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_INTERNAL_ERROR)
    except SystemExit:
        raise
    except Exception:
        logger.exception("Unhandled exception in split command")
        error_console.print("[red]Unexpected error during split[/red]")
        raise SystemExit(EXIT_INTERNAL_ERROR)


@main.command()
@click.argument("controller_path", type=CONTROLLER_ARGUMENT)
@click.option("--layer", "-l", "layer_name", default=None, help="Layer to show (default: first).")
def show(controller_path: Path, layer_name: str | None) -> None:
    """Show the state machine of one layer.

    Examples:
        fsmsplit show hero.json
        fsmsplit show hero.json --layer EyeBlink
    """
    try:
        controller = load_controller(controller_path)
        layer = _get_layer(controller, layer_name)

        machine = layer.state_machine
        console.print(f"[bold]{escape(controller.name)} / {escape(layer.name)}[/bold]")
        console.print(render_ascii(machine), markup=False)
        console.print()
        console.print(
            f"[dim]{len(controller.parameters)} parameters, {len(machine.states)} states, "
            f"{len(machine.any_state_transitions)} any-state transitions[/dim]"
        )
        raise SystemExit(EXIT_SUCCESS)

    except MissingElementError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_USER_ERROR)
    except PersistenceError as e:
        logger.exception("Failed to load controller")
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_INTERNAL_ERROR)
    except SystemExit:
        raise
    except Exception:
        logger.exception("Unhandled exception in show command")
        error_console.print("[red]Unexpected error[/red]")
        raise SystemExit(EXIT_INTERNAL_ERROR)


@main.command()
@click.argument("controller_path", type=CONTROLLER_ARGUMENT)
@click.argument("state_name")
@click.option("--layer", "-l", "layer_name", default=None, help="Layer to search (default: first).")
def reach(controller_path: Path, state_name: str, layer_name: str | None) -> None:
    """List the states reachable from a state.

    STATE_NAME can be a partial match - fuzzy matching will find close matches.

    Examples:
        fsmsplit reach hero.json Idle
        fsmsplit reach hero.json "team intro" --layer "Base Layer"
    """
    from fsmsplit.core.graph_ops import collect_reachable_states

    try:
        controller = load_controller(controller_path)
        layer = _get_layer(controller, layer_name)

        match_result = fuzzy_find_state(layer.state_machine, state_name)
        if match_result.match is None:
            error_console.print(f"[red]Error:[/red] State '{escape(state_name)}' not found.")
            if match_result.suggestions:
                console.print()
                console.print(format_state_suggestions(match_result.suggestions), markup=False)
            raise SystemExit(EXIT_USER_ERROR)

        root = match_result.match
        if not match_result.is_exact:
            console.print(
                f"[dim]Matched: {escape(root.name)} (score: {match_result.score:.0f}%)[/dim]"
            )
            console.print()

        reachable = collect_reachable_states(root)
        names = {s.name for s in reachable}

        console.print(render_ascii(layer.state_machine, highlight_names=names), markup=False)
        console.print()
        console.print(
            f"[bold]{len(reachable)} states reachable from {escape(root.name)}:[/bold] "
            f"{escape(', '.join(s.name for s in reachable))}"
        )
        raise SystemExit(EXIT_SUCCESS)

    except MissingElementError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_USER_ERROR)
    except PersistenceError as e:
        logger.exception("Failed to load controller")
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_INTERNAL_ERROR)
    except SystemExit:
        raise
    except Exception:
        logger.exception("Unhandled exception in reach command")
        error_console.print("[red]Unexpected error[/red]")
        raise SystemExit(EXIT_INTERNAL_ERROR)


@main.command()
@click.argument("controller_path", type=CONTROLLER_ARGUMENT)
@click.option("--exit-time", type=float, default=None, help="Exit time to set.")
@click.option("--duration", type=float, default=None, help="Transition duration to set.")
@click.option("--offset", type=float, default=None, help="Transition offset to set.")
@click.pass_context
def rewrite(
    ctx: click.Context,
    controller_path: Path,
    exit_time: float | None,
    duration: float | None,
    offset: float | None,
) -> None:
    """Set exit time, duration and offset on every transition of the first layer.

    Values default to the rewrite_* settings of the config file.

    Examples:
        fsmsplit rewrite split/Hero0.json
        fsmsplit rewrite split/Hero0.json --duration 0.1
    """
    from fsmsplit.core.authoring import rewrite_transition_timings

    config = _get_config(ctx)

    try:
        controller = load_controller(controller_path)
        layer = _get_layer(controller, None)

        count = rewrite_transition_timings(
            layer.state_machine,
            exit_time=config.rewrite_exit_time if exit_time is None else exit_time,
            duration=config.rewrite_duration if duration is None else duration,
            offset=config.rewrite_offset if offset is None else offset,
        )
        save_controller(controller, controller_path)

        console.print(
            f"[green]✓[/green] Updated {count} transitions in {escape(controller.name)}"
        )
        raise SystemExit(EXIT_SUCCESS)

    except MissingElementError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_USER_ERROR)
    except PersistenceError as e:
        logger.exception("Persistence failed")
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_INTERNAL_ERROR)
    except SystemExit:
        raise
    except Exception:
        logger.exception("Unhandled exception in rewrite command")
        error_console.print("[red]Unexpected error[/red]")
        raise SystemExit(EXIT_INTERNAL_ERROR)


@main.command()
@click.argument("controller_path", type=CONTROLLER_ARGUMENT)
@click.option("--from", "sources", multiple=True, required=True, help="Source state (repeatable).")
@click.option("--to", "targets", multiple=True, required=True, help="Target state (repeatable).")
@click.option("--layer", "-l", "layer_name", default=None, help="Layer to edit (default: first).")
def link(
    controller_path: Path,
    sources: tuple[str, ...],
    targets: tuple[str, ...],
    layer_name: str | None,
) -> None:
    """Create transitions one-to-many or many-to-one.

    Examples:
        fsmsplit link hero.json --from Idle --to Walk --to Run
        fsmsplit link hero.json --from Walk --from Run --to Idle
    """
    from fsmsplit.core.authoring import TransitionLinker

    try:
        controller = load_controller(controller_path)
        layer = _get_layer(controller, layer_name)

        linker = TransitionLinker()
        linker.mark(_get_states(layer, sources))
        created = linker.link(_get_states(layer, targets))
        save_controller(controller, controller_path)

        for transition in created:
            destination = transition.destination.name if transition.destination else "?"
            console.print(f"[green]+[/green] → {escape(destination)}")
        console.print(f"[green]✓[/green] Created {len(created)} transitions")
        raise SystemExit(EXIT_SUCCESS)

    except (MissingElementError, SelectionError) as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_USER_ERROR)
    except PersistenceError as e:
        logger.exception("Persistence failed")
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_INTERNAL_ERROR)
    except SystemExit:
        raise
    except Exception:
        logger.exception("Unhandled exception in link command")
        error_console.print("[red]Unexpected error[/red]")
        raise SystemExit(EXIT_INTERNAL_ERROR)


@main.command(name="add-triggers")
@click.argument("controller_path", type=CONTROLLER_ARGUMENT)
@click.option(
    "--trigger",
    "-t",
    "triggers",
    multiple=True,
    help="Trigger parameter to declare (repeatable, defaults to the built-in pair).",
)
@click.option(
    "--attach",
    "-a",
    "selections",
    multiple=True,
    help=(
        "Transitions that get the next trigger as a condition, as Source->Destination "
        "pairs separated by commas (repeatable, one trigger per use)."
    ),
)
@click.option("--layer", "-l", "layer_name", default=None, help="Layer to edit (default: first).")
def add_triggers(
    controller_path: Path,
    triggers: tuple[str, ...],
    selections: tuple[str, ...],
    layer_name: str | None,
) -> None:
    """Declare trigger parameters and attach them to transitions.

    Each --attach consumes the next trigger in order.

    Examples:
        fsmsplit add-triggers hero.json
        fsmsplit add-triggers hero.json -t Jump -t Land
        fsmsplit add-triggers hero.json -a "Idle->Walk,Walk->Run" -a "Run->Idle"
    """
    from fsmsplit.core.authoring import TriggerSession

    try:
        controller = load_controller(controller_path)
        session = TriggerSession(controller, triggers) if triggers else TriggerSession(controller)
        added = session.add_parameters()

        attached: list[tuple[str, int]] = []
        if selections:
            layer = _get_layer(controller, layer_name)
            for selection in selections:
                transitions = _get_transitions(layer, selection)
                attached.append((session.add_next_trigger(transitions), len(transitions)))
        save_controller(controller, controller_path)

        if added:
            console.print(f"[green]✓[/green] Added triggers: {escape(', '.join(added))}")
        else:
            console.print("[dim]All triggers already declared.[/dim]")
        for trigger, count in attached:
            console.print(f"[green]+[/green] {escape(trigger)} on {count} transitions")
        raise SystemExit(EXIT_SUCCESS)

    except (MissingElementError, SelectionError) as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_USER_ERROR)
    except PersistenceError as e:
        logger.exception("Persistence failed")
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_INTERNAL_ERROR)
    except SystemExit:
        raise
    except Exception:
        logger.exception("Unhandled exception in add-triggers command")
        error_console.print("[red]Unexpected error[/red]")
        raise SystemExit(EXIT_INTERNAL_ERROR)


@main.command(name="init-config")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing config file.")
@click.pass_context
def init_config(ctx: click.Context, force: bool) -> None:
    """Write a documented default config file.

    Example: fsmsplit init-config
    """
    config_path = ctx.obj.get("config_path") or get_config_path()

    if config_path.exists() and not force:
        error_console.print(
            f"[yellow]Config already exists:[/yellow] {escape(str(config_path))} "
            "(use --force to overwrite)"
        )
        raise SystemExit(EXIT_USER_ERROR)

    try:
        written = write_default_config(ctx.obj.get("config_path"))
    except OSError as e:
        logger.exception("Failed to write config")
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(EXIT_INTERNAL_ERROR)

    console.print(f"[green]✓[/green] Config written to {escape(str(written))}")
    raise SystemExit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
