"""scope command: inspect how path filters scope a monorepo app."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shiplog_core.errors import ShiplogError
from shiplog_core.paths import TargetPathSpec
from shiplog_core.utils.ignored_paths import is_ignored_path
from shiplog_core.workflow_config import WorkflowConfig

console = Console()


@click.command("scope")
@click.option(
    "--workflow",
    "workflow_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Local workflow file whose on.push path filters define the scope.",
)
@click.option("--paths", default=None, help="Comma- or newline-separated path globs. Overrides --workflow.")
@click.option("--check", "checks", multiple=True, help="A repository path to test against the scope. Repeatable.")
@click.pass_context
def scope_cmd(ctx, workflow_path: str | None, paths: str | None, checks: tuple[str, ...]):
    """Show the include/exclude globs for an app and test paths against them.

    Useful for checking a workflow's path filters before relying on them for
    release notes: a path reported out of scope here will never appear in a
    release delta.
    """
    paths = paths or (ctx.obj or {}).get("config", {}).get("paths")
    if not paths and not workflow_path:
        raise click.UsageError("Pass --workflow or --paths.")

    try:
        if paths:
            spec = TargetPathSpec.from_input(paths)
            source = "--paths"
        else:
            spec = TargetPathSpec.from_workflow_config(WorkflowConfig.load(workflow_path))
            source = workflow_path
    except FileNotFoundError as e:
        raise click.UsageError(str(e)) from e
    except ShiplogError as e:
        raise click.ClickException(str(e)) from e

    if spec is None:
        console.print(f"[yellow]{source} defines no path filters: every path is in scope.[/yellow]")
    else:
        table = Table(title=f"Scope from {source}", show_header=True)
        table.add_column("Kind", style="bold")
        table.add_column("Pattern")
        for pattern in spec.included:
            table.add_row("[green]include[/green]", escape(pattern))
        for pattern in spec.excluded:
            table.add_row("[red]exclude[/red]", escape(pattern))
        console.print(table)

        prefixes = [p for p in spec.sanitized_included_prefixes() if p]
        if prefixes:
            console.print(f"  API path prefixes: {', '.join(prefixes)}")

    for path in checks:
        in_scope = not is_ignored_path(path) and (spec is None or spec.is_included(path))
        mark = "[green]in scope[/green]" if in_scope else "[red]out of scope[/red]"
        console.print(f"  {escape(path)}: {mark}")
