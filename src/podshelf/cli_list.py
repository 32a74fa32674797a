"""CLI commands for listing resources.

This module provides the `podshelf list` subcommand group for
listing subscribed podcasts and their episodes.
"""

import asyncio
import json
import sys
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from podshelf.config.manager import ConfigManager
from podshelf.feeds.models import DownloadStatus, Episode, Podcast
from podshelf.storage.json_file import JsonFilePodcastRepository
from podshelf.storage.root import ConfigStorageRootProvider
from podshelf.utils.display import format_date, format_duration, truncate_text, truncate_url
from podshelf.utils.errors import PodshelfError

app = typer.Typer(
    name="list",
    help="List subscribed podcasts and their episodes",
    invoke_without_command=True,
)
console = Console()

STATUS_STYLES = {
    DownloadStatus.NOT_STARTED: "dim",
    DownloadStatus.IN_PROGRESS: "yellow",
    DownloadStatus.COMPLETED: "green",
    DownloadStatus.FAILED: "red",
}


def _repository() -> JsonFilePodcastRepository:
    return JsonFilePodcastRepository(ConfigStorageRootProvider(ConfigManager()))


def _podcast_json(podcast: Podcast) -> dict:
    downloaded = sum(1 for e in podcast.episodes if e.is_downloaded)
    return {
        "id": podcast.id,
        "title": podcast.title,
        "feed_uri": podcast.feed_uri,
        "last_updated": podcast.last_updated.isoformat(),
        "episodes": len(podcast.episodes),
        "downloaded": downloaded,
    }


def _episode_json(episode: Episode) -> dict:
    return {
        "id": episode.id,
        "title": episode.title,
        "episode_number": episode.episode_number,
        "date": format_date(episode.published_at),
        "duration": format_duration(episode.duration) if episode.duration else None,
        "status": episode.download_status.value,
        "local_file_path": episode.local_file_path,
    }


@app.callback()
def list_default(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List subscribed podcasts. Use subcommands for other resources."""
    if ctx.invoked_subcommand is None:
        _list_podcasts_impl(json_output=json_output)


@app.command("podcasts")
def list_podcasts(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List all subscribed podcasts, most recently updated first."""
    _list_podcasts_impl(json_output=json_output)


@app.command("episodes")
def list_episodes(
    podcast_id: Annotated[str, typer.Argument(help="Podcast id to list episodes from")],
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of episodes to show (1-1000)", min=1, max=1000),
    ] = 20,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List a podcast's episodes with their download status.

    Examples:
        podshelf list episodes 3f2a...

        podshelf list episodes 3f2a... --limit 50
    """
    try:
        podcast = asyncio.run(_repository().get(podcast_id))

        if podcast is None:
            if json_output:
                print(json.dumps({"error": f"Podcast '{podcast_id}' not found"}, indent=2))
            else:
                console.print(f"[red]✗[/red] Podcast '{escape(podcast_id)}' not found.")
                console.print("  Use [cyan]podshelf list podcasts[/cyan] to see subscriptions.")
            sys.exit(1)

        episodes = podcast.episodes[:limit]

        if json_output:
            result = {
                "podcast": podcast.title,
                "episodes": [_episode_json(e) for e in episodes],
                "total": len(podcast.episodes),
                "showing": len(episodes),
            }
            print(json.dumps(result, indent=2))
            return

        table = Table(title=f"Episodes of {escape(podcast.title)}", show_lines=True)
        table.add_column("#", style="dim", width=5)
        table.add_column("Title", style="cyan", max_width=60)
        table.add_column("Date", style="green", width=12)
        table.add_column("Duration", style="yellow", width=10)
        table.add_column("Status")
        table.add_column("Id", style="dim", overflow="fold")

        for episode in episodes:
            number = str(episode.episode_number) if episode.episode_number is not None else "-"
            status = episode.download_status
            table.add_row(
                number,
                escape(truncate_text(episode.title, 60)),
                format_date(episode.published_at),
                format_duration(episode.duration),
                f"[{STATUS_STYLES[status]}]{status.value}[/{STATUS_STYLES[status]}]",
                episode.id,
            )

        console.print(table)
        console.print(f"\n[dim]Showing {len(episodes)} of {len(podcast.episodes)} episodes[/dim]")

    except PodshelfError as e:
        console.print(f"[red]✗[/red] Error: {e}")
        sys.exit(1)


def _list_podcasts_impl(json_output: bool = False) -> None:
    """Display subscribed podcasts."""
    try:
        podcasts = asyncio.run(_repository().list())

        if json_output:
            result = {"podcasts": [_podcast_json(p) for p in podcasts], "total": len(podcasts)}
            print(json.dumps(result, indent=2))
            return

        if not podcasts:
            console.print("[yellow]No podcasts subscribed yet.[/yellow]")
            console.print("\nSubscribe: [cyan]podshelf subscribe <url>[/cyan]")
            return

        table = Table(title="[bold]Subscribed Podcasts[/bold]")
        table.add_column("Id", style="dim", overflow="fold")
        table.add_column("Title", style="cyan")
        table.add_column("Feed", style="blue")
        table.add_column("Episodes", justify="right")
        table.add_column("Downloaded", justify="right", style="green")

        for podcast in podcasts:
            downloaded = sum(1 for e in podcast.episodes if e.is_downloaded)
            table.add_row(
                podcast.id,
                escape(podcast.title),
                truncate_url(podcast.feed_uri, max_length=50),
                str(len(podcast.episodes)),
                str(downloaded),
            )

        console.print(table)
        console.print(f"\n[dim]Total: {len(podcasts)} podcast(s)[/dim]")

    except PodshelfError as e:
        console.print(f"[red]✗[/red] Error: {e}")
        sys.exit(1)
