import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tapestry.app import ScriptApp
from tapestry.common.messaging import bus
from tapestry.compiler import parse
from tapestry.runtime.context import Status
from tapestry.runtime.exceptions import ExecutionCancelled, TapestryError
from tapestry.spec.program import Instruction
from tapestry.spec.record import ScriptRecord
from tapestry.tools.events import tool_event_bus
from tapestry.tools.graph import InMemoryGraphTool
from tapestry.tools.registry import registry
from .rendering import RichCliRenderer

app = typer.Typer(help="Run and inspect Tapestry automation scripts.")
console = Console()


def _ensure_default_tools() -> None:
    if registry.get(InMemoryGraphTool.id) is None:
        registry.register(InMemoryGraphTool(event_bus=tool_event_bus))


def _load_source(path: Path) -> str:
    if not path.exists():
        bus.error("cli.file_not_found", path=path)
        raise typer.Exit(code=2)

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() != ".json":
        return text

    try:
        return ScriptRecord.from_dict(json.loads(text)).code
    except (json.JSONDecodeError, TypeError) as e:
        bus.error("cli.invalid_record", path=path, error=e)
        raise typer.Exit(code=2)


def _describe(op: Instruction) -> str:
    if op.tool_id:
        args = ", ".join(f"{k}={v}" for k, v in op.args.items())
        call = f"{op.tool_id}.{op.action}({args})"
        return f"{op.target} = {call}" if op.target else call
    if op.condition is not None:
        return op.condition
    if op.collection is not None:
        return f"{op.target} in {op.collection}"
    if op.target and op.expr is not None:
        return f"{op.target} = {op.expr}"
    return op.expr or op.target or ""


@app.command()
def run(
    path: Path = typer.Argument(..., help="Script file, or a JSON script record."),
    step: bool = typer.Option(
        False, "--step", help="Wait for Enter before each instruction."
    ),
    max_steps: Optional[int] = typer.Option(
        None,
        "--max-steps",
        envvar="TAPESTRY_MAX_STEPS",
        help="Abort the run after this many instructions.",
    ),
    trace: bool = typer.Option(
        False, "--trace", help="Log every executed instruction."
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        envvar="TAPESTRY_LOG_LEVEL",
        help="Minimum level for console logging (DEBUG, INFO, WARNING, ERROR).",
    ),
    log_format: str = typer.Option(
        "human",
        "--log-format",
        envvar="TAPESTRY_LOG_FORMAT",
        help="Format for logging ('human' or 'json').",
    ),
):
    """
    Execute a script against the registered tools. Script output goes to
    stdout, diagnostics to stderr.
    """
    renderer = RichCliRenderer(min_level=log_level)
    bus.set_renderer(renderer)
    source = _load_source(path)
    _ensure_default_tools()

    script = ScriptApp(
        source,
        log_level=log_level,
        log_format=log_format,
        max_steps=max_steps,
        output=typer.echo,
        trace=trace,
        renderer=renderer,
    )
    if not script.program.ok:
        bus.error("cli.syntax_error", error=script.program.error)
        raise typer.Exit(code=1)

    before_step = None
    if step:

        def before_step(op: Instruction) -> None:
            typer.prompt(
                bus.store.get("cli.step_prompt", line=op.line),
                default="",
                show_default=False,
            )

    try:
        ctx = script.run(before_step=before_step)
    except ExecutionCancelled:
        raise typer.Exit(code=130)
    except TapestryError:
        # Already reported through the runtime event bus.
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        script.stop()
        bus.warning("cli.interrupted")
        raise typer.Exit(code=130)

    if ctx.status is not Status.COMPLETED:
        raise typer.Exit(code=1)


@app.command()
def check(
    path: Path = typer.Argument(..., help="Script file, or a JSON script record."),
    listing: bool = typer.Option(
        True, "--listing/--quiet", help="Print the compiled instruction table."
    ),
):
    """
    Compile a script without running it.
    """
    bus.set_renderer(RichCliRenderer())
    program = parse(_load_source(path))
    if not program.ok:
        bus.error("cli.syntax_error", error=program.error)
        raise typer.Exit(code=1)

    if listing:
        table = Table(title=str(path))
        table.add_column("#", justify="right")
        table.add_column("Line", justify="right")
        table.add_column("Op")
        table.add_column("Jump", justify="right")
        table.add_column("Detail")
        for index, op in enumerate(program.instructions):
            jump = "" if op.jump_target is None else str(op.jump_target)
            table.add_row(str(index), str(op.line), op.op.value, jump, _describe(op))
        console.print(table)

    bus.info("cli.syntax_ok", path=path, count=len(program))


@app.command()
def tools():
    """
    List the registered tools and their actions.
    """
    bus.set_renderer(RichCliRenderer())
    _ensure_default_tools()
    registered = registry.list_tools()
    if not registered:
        bus.info("cli.no_tools")
        return

    table = Table(title="Tools")
    table.add_column("Tool")
    table.add_column("Action")
    table.add_column("Arguments")
    table.add_column("Description")
    for tool in registered:
        for action in tool.list_actions():
            table.add_row(
                tool.id, action.name, ", ".join(action.arg_names), action.description
            )
    console.print(table)


def main():
    bus.set_renderer(RichCliRenderer())
    app()


if __name__ == "__main__":
    main()
