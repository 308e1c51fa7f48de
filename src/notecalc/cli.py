"""Command-line interface for notecalc."""

from __future__ import annotations

import json
from pathlib import Path

import click

from notecalc import __version__


@click.group()
@click.version_option(version=__version__, prog_name="notecalc")
def main() -> None:
    """notecalc -- evaluate calculations written in plain-text notes.

    Lines like ``rent = 1,200`` or ``Total: rent * 12`` are evaluated
    together; later lines can use earlier variables and ``@N`` line results.
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_pairs(items: tuple[str, ...], option: str) -> dict[str, float]:
    pairs: dict[str, float] = {}
    for item in items:
        if "=" not in item:
            raise click.ClickException(f"Invalid {option} format: {item!r}. Use key=value.")
        k, v = item.split("=", 1)
        try:
            pairs[k.strip()] = float(v)
        except ValueError:
            raise click.ClickException(f"Invalid {option} value: {v!r} is not a number.")
    return pairs


def _resolve_settings(
    project: str | None, precision: int | None, max_iterations: int | None
) -> tuple[int, int]:
    """Merge command-line overrides over ``notecalc.yaml`` settings."""
    from notecalc.config import DEFAULT_CONFIG, ConfigError, engine_settings, load_config

    try:
        config = load_config(Path(project)) if project else dict(DEFAULT_CONFIG)
        if precision is not None:
            config["precision"] = precision
        if max_iterations is not None:
            config["max_iterations"] = max_iterations
        return engine_settings(config)
    except ConfigError as e:
        raise click.ClickException(str(e))


# ---------------------------------------------------------------------------
# Init
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path(), default=".")
def init(directory: str) -> None:
    """Write a default notecalc.yaml into DIRECTORY."""
    from notecalc.config import write_default_config

    try:
        path = write_default_config(Path(directory))
    except FileExistsError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created {path}")


# ---------------------------------------------------------------------------
# Eval / Run
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("expression")
@click.option("--var", "variables", multiple=True, help="Variable as name=value.")
@click.option("--line", "lines", multiple=True, help="Line result as N=value.")
@click.option("--precision", default=None, type=int, help="Digits after the decimal point.")
@click.option("--project", default=None, type=click.Path(exists=True, file_okay=False), help="Project directory (config and event log).")
def eval_cmd(
    expression: str,
    variables: tuple[str, ...],
    lines: tuple[str, ...],
    precision: int | None,
    project: str | None,
) -> None:
    """Evaluate a single EXPRESSION."""
    from notecalc.context import EvaluationContext
    from notecalc.engine import evaluate
    from notecalc.formulas.errors import EvaluationError

    line_results = _parse_pairs(lines, "--line")
    try:
        ctx = EvaluationContext.create(_parse_pairs(variables, "--var"), line_results)
    except EvaluationError as e:
        raise click.ClickException(e.message)
    prec, _ = _resolve_settings(project, precision, None)

    if project:
        from notecalc.logging.events import set_project_dir

        set_project_dir(Path(project))

    try:
        click.echo(evaluate(expression, ctx, precision=prec))
    except EvaluationError as e:
        click.echo(f"Error ({e.kind}): {e.message}", err=True)
        raise SystemExit(1)


@main.command("run")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--project", default=None, type=click.Path(exists=True, file_okay=False), help="Project directory (config and event log).")
@click.option("--precision", default=None, type=int, help="Digits after the decimal point.")
@click.option("--max-iterations", default=None, type=int, help="Maximum evaluation passes.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def run_cmd(
    file: str,
    project: str | None,
    precision: int | None,
    max_iterations: int | None,
    as_json: bool,
) -> None:
    """Evaluate every line of the document FILE."""
    from notecalc.engine import process_document

    prec, iterations = _resolve_settings(project, precision, max_iterations)
    if project:
        from notecalc.logging.events import set_project_dir

        set_project_dir(Path(project))

    text = Path(file).read_text(encoding="utf-8")
    result = process_document(text, precision=prec, max_iterations=iterations)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    for index, raw in enumerate(text.split("\n"), start=1):
        raw = raw.rstrip("\r")
        if index in result.display:
            click.echo(f"{raw.rstrip()}  => {result.display[index]}")
        elif index in result.errors:
            click.echo(f"{raw.rstrip()}  !! {result.errors[index]}")
        else:
            click.echo(raw)

    stats = result.stats
    status = "converged" if result.converged else "not converged"
    click.echo("")
    click.echo(
        f"{stats['calculations']} result(s), {stats['variables']} variable(s), "
        f"{len(result.errors)} error(s); {result.iterations} pass(es), {status}"
    )


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


@main.command("functions")
def functions_cmd() -> None:
    """List builtin functions."""
    from notecalc.functions import list_functions

    for spec in list_functions():
        click.echo(f"  {spec.signature:<20s} {spec.doc}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def _echo_events(events: list[dict]) -> None:
    for evt in events:
        ts = evt.get("ts", "")
        lvl = evt.get("level", "").upper()
        etype = evt.get("event_type", "")
        msg = evt.get("message", "")
        err = evt.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if err:
            line += f"  ({err})"
        click.echo(line)


@main.command("events")
@click.argument("directory", type=click.Path(exists=True))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--run-id", default=None, help="Filter by document run ID.")
@click.option("--line", default=None, type=int, help="Filter by document line.")
@click.option("--error-code", default=None, help="Filter by error code, e.g. parse_error.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    run_id: str | None,
    line: int | None,
    error_code: str | None,
    limit: int,
) -> None:
    """Show the structured event log for DIRECTORY."""
    from notecalc.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.query(
        level=level,
        event_type=event_type,
        run_id=run_id,
        line=line,
        error_code=error_code,
        limit=limit,
    )

    if not events:
        click.echo("No events found.")
        return
    _echo_events(events)


@main.command("run-log")
@click.argument("directory", type=click.Path(exists=True))
@click.argument("run_id")
def run_log_cmd(directory: str, run_id: str) -> None:
    """Show one document run: its events, then failing lines by line."""
    from notecalc.logging.sink import EventSink

    run = EventSink(Path(directory)).read_run(run_id)
    if not run.events:
        click.echo(f"No events found for run {run_id}.")
        return
    _echo_events(run.events)

    click.echo("")
    if run.converged is None:
        click.echo("Outcome: unknown (no closing event)")
    else:
        click.echo(f"Outcome: {'converged' if run.converged else 'not converged'}")
    if run.line_errors:
        click.echo("Failing lines:")
        for line_index, code in run.line_errors.items():
            click.echo(f"  line {line_index}: {code}")
