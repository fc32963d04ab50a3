"""delta command: compute the release delta for a deploy run."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shiplog_core.diff import DiffDocument
from shiplog_core.errors import ShiplogError
from shiplog_core.gh.auth import credentials_from_config
from shiplog_core.paths import scope_description
from shiplog_core.resolver import BACKENDS, ReleaseDelta, resolve_release_delta

console = Console()


def _print_delta(delta: ReleaseDelta) -> None:
    console.print(f"\n[bold]Release delta for [cyan]{delta.repo}[/cyan][/bold]")
    console.print(f"  Run:           {delta.run.id} ({delta.run.head_sha[:7]})")
    console.print(f"  Previous run:  {delta.previous_run.id} ({delta.previous_run.head_sha[:7]})")
    console.print(f"  Scope:         {escape(scope_description(delta.spec))}")
    console.print(f"  Backend:       {delta.backend}")
    console.print(f"  Compare:       {delta.compare_url}")

    if delta.skipped_runs:
        skipped = ", ".join(str(r.id) for r in delta.skipped_runs)
        console.print(f"  [yellow]Failed deploys shipping now:[/yellow] {skipped}")

    files = DiffDocument.parse(delta.result.diff).paths
    file_table = Table(title=f"Changed files ({len(files)})", show_header=False)
    file_table.add_column("File")
    for path in files:
        file_table.add_row(escape(path))
    console.print(file_table)

    order = "newest first" if delta.result.ordered else "unordered"
    commit_table = Table(title=f"Commits ({len(delta.result.commit_messages)}, {order})", show_header=False)
    commit_table.add_column("Message")
    for message in delta.result.commit_messages:
        commit_table.add_row(escape(message.splitlines()[0]) if message else "")
    console.print(commit_table)


@click.command("delta")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--run-id", "run_id", type=int, required=True, help="ID of the deploy workflow run.")
@click.option(
    "--paths",
    default=None,
    help="Comma- or newline-separated path globs. Overrides the workflow's push filters.",
)
@click.option(
    "--backend",
    type=click.Choice(BACKENDS),
    default="auto",
    show_default=True,
    help="Where to compute the delta. 'auto' picks by repository size.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the release delta as JSON.")
@click.pass_context
def delta_cmd(ctx, repo: str, run_id: int, paths: str | None, backend: str, as_json: bool):
    """Compute the diff and commit messages a deploy run shipped.

    Compares the run's head commit with the head of the previous successful
    run of the same workflow, scoped to the app's paths.

    \b
    Credentials (first match wins):
      GITHUB_TOKEN                     token, or `gh auth login` session
      GITHUB_APP_ID                    GitHub App, together with
      GITHUB_APP_PRIVATE_KEY           PEM or base64-encoded PEM
      GITHUB_APP_INSTALLATION_ID
    """
    config = dict(ctx.obj["config"])
    if paths is not None:
        config["paths"] = paths

    credentials = credentials_from_config(config)
    if credentials is None:
        raise click.UsageError(
            "No GitHub credentials found. Set GITHUB_TOKEN, run `gh auth login`, "
            "or configure GITHUB_APP_ID, GITHUB_APP_PRIVATE_KEY and GITHUB_APP_INSTALLATION_ID."
        )

    try:
        delta = resolve_release_delta(
            repo=repo,
            run_id=run_id,
            config=config,
            credentials=credentials,
            backend=backend,
        )
    except ShiplogError as e:
        raise click.ClickException(str(e)) from e

    if delta is None:
        if as_json:
            click.echo("null")
        else:
            console.print("[yellow]Nothing to announce for this run.[/yellow]")
        return

    if as_json:
        click.echo(json.dumps(delta.to_dict(), indent=2))
    else:
        _print_delta(delta)
