"""CLI client for the Slack archiver.

Provides commands to download a workspace, render the static archive and
inspect the persisted store.
"""

import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from slack_archive.models.config import ArchiveConfig, ConfigLoader, resolve_token
from slack_archive.render.html import render_archive
from slack_archive.render.search import SearchFile
from slack_archive.sources.transport import SlackTransport, TransportError
from slack_archive.storage.archive_store import ArchiveStore, page_file_name
from slack_archive.sync.archiver import WorkspaceArchiver
from slack_archive.sync.context import ArchiveContext
from slack_archive.sync.media import MediaDownloader

# Configure logging to stay quiet by default, will be adjusted by verbose flag
logging.basicConfig(
    level=logging.WARNING, format="%(message)s", datefmt="[%X]", handlers=[RichHandler(rich_tracebacks=True)]
)

app = typer.Typer(help="slack-archive - Incremental Slack workspace archiver with a static HTML viewer")
console = Console()


class State:
    """Application state container."""

    def __init__(self) -> None:
        self.config: ArchiveConfig = ArchiveConfig()
        self.verbose: bool = False


state = State()


@app.callback()  # type: ignore[misc]
def main(
    config: str = typer.Option("config/slack-archive.yaml", "--config", help="Path to configuration file"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging (DEBUG level)"),
) -> None:
    """slack-archive - Incremental Slack workspace archiver with a static HTML viewer."""
    state.verbose = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("slack_archive").setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(logging.INFO)
        logging.getLogger("slack_archive").setLevel(logging.INFO)

    state.config = ConfigLoader.load(config)


def _render(channel_ids: Optional[List[str]]) -> int:
    context = ArchiveContext.create(state.config)
    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), transient=True) as progress:
        task = progress.add_task(description="Rendering HTML...", total=None)
        written = render_archive(
            state.config,
            context.store,
            context.entity_cache,
            context.state.state,
            channel_ids=channel_ids,
            progress=lambda text: progress.update(task, description=text),
        )
    console.print(f"[green]Wrote {written} pages to {context.store.html_dir}[/green]")
    return written


@app.command()  # type: ignore[misc]
def download(
    channel: Optional[List[str]] = typer.Option(None, "--channel", "-c", help="Only archive these channel ids"),
    html: bool = typer.Option(True, "--html/--no-html", help="Render the HTML archive after downloading"),
) -> None:
    """Download new messages, threads, profiles and files, then render the archive."""
    token = resolve_token()
    if not token:
        console.print("[red]No Slack token found. Set SLACK_TOKEN (or SLACK_BOT_TOKEN).[/red]")
        raise typer.Exit(code=1)

    transport = SlackTransport(state.config, token=token)
    context = ArchiveContext.create(state.config, transport=transport)
    media = None
    if state.config.download_media:
        media = MediaDownloader(context.store, token, timeout=state.config.media_timeout)

    try:
        with Progress(
            SpinnerColumn(), TextColumn("[progress.description]{task.description}"), transient=True
        ) as progress:
            task = progress.add_task(description="Fetching channels...", total=None)
            archiver = WorkspaceArchiver(
                state.config,
                transport,
                context,
                progress=lambda text: progress.update(task, description=text),
                media=media,
            )
            report = archiver.run(channel or None)
    except TransportError as e:
        console.print(f"[red]Download aborted: {e}[/red]")
        if state.verbose:
            logging.exception("Transport error")
        raise typer.Exit(code=1)

    console.print(
        f"[green]Archived {len(report.channels)} channels, {report.total_new} new messages.[/green]"
        + (f" [yellow]Skipped {report.skipped}.[/yellow]" if report.skipped else "")
    )

    if html:
        _render(channel or None)


@app.command()  # type: ignore[misc]
def html(
    channel: Optional[List[str]] = typer.Option(None, "--channel", "-c", help="Only render these channel ids"),
) -> None:
    """Render the HTML archive from the persisted store without calling Slack."""
    _render(channel or None)


@app.command()  # type: ignore[misc]
def locate(
    channel_id: str = typer.Argument(..., help="Channel id"),
    ts: str = typer.Argument(..., help="Message timestamp, e.g. 1700000000.000100"),
) -> None:
    """Print the page that contains a message."""
    store = ArchiveStore.from_config(state.config)
    data = store.read_search()
    if data is None:
        console.print(f"[red]No search file at {store.search_path}. Run `html` first.[/red]")
        raise typer.Exit(code=1)

    index = SearchFile.from_dict(data).locate(channel_id, ts)
    if index is None:
        console.print(f"[yellow]{ts} is older than every rendered page of {channel_id}.[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"{index}\t{page_file_name(channel_id, index)}")


@app.command()  # type: ignore[misc]
def status() -> None:
    """Show per-channel archive progress."""
    context = ArchiveContext.create(state.config)
    archive_state = context.state.state
    names = {c.get("id"): c.get("name") or c.get("id") for c in context.store.read_channels()}

    if archive_state.auth:
        console.print(f"Authenticated as [bold]{archive_state.auth.get('user')}[/bold] on {archive_state.auth.get('team')}")

    table = Table(title="Archive Status")
    table.add_column("Channel", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Messages", justify="right", style="magenta")
    table.add_column("Fully downloaded", justify="center")

    for channel_id, channel_state in sorted(archive_state.channels.items()):
        table.add_row(
            channel_id,
            names.get(channel_id) or "",
            str(channel_state.message_count),
            "yes" if channel_state.fully_downloaded else "no",
        )
    console.print(table)


if __name__ == "__main__":
    app()
