"""CLI entry point for podshelf."""

import asyncio
import os
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from podshelf.audio.downloader import MediaDownloader
from podshelf.cli_list import app as list_app
from podshelf.config.logging import setup_logging
from podshelf.config.manager import STORAGE_ROOT_ENV_VAR, ConfigManager
from podshelf.feeds.parser import RSSParser
from podshelf.storage.json_file import JsonFilePodcastRepository
from podshelf.storage.layout import StorageLayout
from podshelf.storage.root import ConfigStorageRootProvider
from podshelf.subscriptions.manager import PodcastManager
from podshelf.utils.errors import PodshelfError, ValidationError
from podshelf.utils.retry import RetryConfig

T = TypeVar("T")

app = typer.Typer(
    name="podshelf",
    help="Subscribe to podcasts and keep a portable local library",
    no_args_is_help=True,
)
config_app = typer.Typer(name="config", help="Show or change podshelf configuration")
app.add_typer(list_app, name="list")
app.add_typer(config_app, name="config")
console = Console()


def build_manager(config_manager: ConfigManager | None = None) -> PodcastManager:
    """Wire the default collaborators from configuration.

    Args:
        config_manager: Config source (defaults to the user's config file)

    Returns:
        Manager backed by the RSS parser, the JSON repository under the
        configured storage root, and the httpx media downloader
    """
    config_manager = config_manager or ConfigManager()
    settings = config_manager.load_config().download

    root_provider = ConfigStorageRootProvider(config_manager)
    retry_config = RetryConfig(max_attempts=settings.max_attempts)

    return PodcastManager(
        feed_service=RSSParser(
            timeout=settings.timeout_seconds,
            user_agent=settings.user_agent,
            retry_config=retry_config,
        ),
        repository=JsonFilePodcastRepository(root_provider),
        transfer_service=MediaDownloader(
            StorageLayout(root_provider),
            timeout_seconds=settings.timeout_seconds,
            user_agent=settings.user_agent,
            retry_config=retry_config,
        ),
    )


def run_command(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine, turning podshelf errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except ValidationError as e:
        console.print(f"[red]✗[/red] {e}")
        if e.suggestion:
            console.print(f"[dim]  {e.suggestion}[/dim]")
        sys.exit(1)
    except PodshelfError as e:
        console.print(f"[red]✗[/red] Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/yellow]")
        sys.exit(130)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose (DEBUG) logging"
    ),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to file"
    ),
) -> None:
    """podshelf - subscribe to podcasts and download their episodes."""
    setup_logging(verbose=verbose, log_file=log_file)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    from podshelf import __version__

    console.print(f"[bold cyan]podshelf[/bold cyan] v{__version__}")


@app.command("subscribe")
def subscribe_command(
    url: str = typer.Argument(..., help="RSS feed URL"),
) -> None:
    """Subscribe to a podcast feed.

    Subscribing again to the same feed refreshes it and keeps downloads.

    Examples:
        podshelf subscribe https://example.com/feed.xml
    """

    async def run_subscribe() -> None:
        manager = build_manager()
        with console.status("Fetching feed..."):
            podcast = await manager.subscribe(url)

        console.print(
            f"[green]✓[/green] Subscribed to [bold]{podcast.title}[/bold] "
            f"({len(podcast.episodes)} episodes)"
        )
        console.print(f"[dim]  Id: {podcast.id}[/dim]")

    run_command(run_subscribe())


@app.command("refresh")
def refresh_command(
    podcast_id: str = typer.Argument(..., help="Podcast id"),
) -> None:
    """Fetch a podcast's feed again and merge new episodes."""

    async def run_refresh() -> None:
        manager = build_manager()
        before = len((await manager.get_podcast(podcast_id)).episodes)
        with console.status("Refreshing feed..."):
            podcast = await manager.refresh(podcast_id)

        added = len(podcast.episodes) - before
        console.print(
            f"[green]✓[/green] Refreshed [bold]{podcast.title}[/bold] "
            f"({added} new, {len(podcast.episodes)} total)"
        )

    run_command(run_refresh())


@app.command("remove")
def remove_command(
    podcast_id: str = typer.Argument(..., help="Podcast id to remove"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmation prompt"
    ),
) -> None:
    """Unsubscribe from a podcast. Downloaded files are left on disk.

    Examples:
        podshelf remove 3f2a...

        podshelf remove 3f2a... --force  # Skip confirmation
    """

    async def run_remove() -> None:
        manager = build_manager()

        if not force:
            podcast = await manager.get_podcast(podcast_id)
            console.print(f"\nPodcast: [bold]{podcast.title}[/bold]")
            console.print(f"Feed:    [dim]{podcast.feed_uri}[/dim]")
            if not typer.confirm("\nAre you sure you want to remove this podcast?"):
                console.print("[yellow]Cancelled[/yellow]")
                return

        await manager.remove(podcast_id)
        console.print(f"[green]✓[/green] Podcast '[bold]{podcast_id}[/bold]' removed")

    run_command(run_remove())


@app.command("download")
def download_command(
    podcast_id: str = typer.Argument(..., help="Podcast id"),
    episode_id: str = typer.Argument(..., help="Episode id"),
) -> None:
    """Download a single episode."""

    async def run_download() -> None:
        manager = build_manager()

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Downloading...", total=1.0)
            episode = await manager.download_episode(
                podcast_id,
                episode_id,
                lambda fraction: progress.update(task, completed=fraction),
            )

        console.print(f"[green]✓[/green] Downloaded [bold]{episode.title}[/bold]")
        console.print(f"[cyan]→[/cyan] {episode.local_file_path}")

    run_command(run_download())


@app.command("download-all")
def download_all_command(
    podcast_id: str = typer.Argument(..., help="Podcast id"),
    chunk_size: int | None = typer.Option(
        None, "--chunk-size", "-c", help="Episodes per logged batch (default from config)"
    ),
) -> None:
    """Download every episode of a podcast that is not on disk yet."""

    async def run_download_all() -> None:
        config_manager = ConfigManager()
        size = chunk_size if chunk_size is not None else config_manager.load_config().download.chunk_size
        manager = build_manager(config_manager)

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Downloading episodes...", total=1.0)
            downloaded = await manager.download_all_episodes(
                podcast_id,
                chunk_size=size,
                progress=lambda fraction: progress.update(task, completed=fraction),
            )

        console.print(f"[green]✓[/green] Downloaded {downloaded} episode(s)")

    run_command(run_download_all())


@app.command("recover")
def recover_command() -> None:
    """Mark downloads interrupted by a crash as failed so they can be retried."""

    async def run_recover() -> None:
        manager = build_manager()
        recovered = await manager.recover_interrupted_downloads()
        if recovered:
            console.print(f"[green]✓[/green] Recovered {recovered} interrupted download(s)")
        else:
            console.print("[dim]No interrupted downloads found[/dim]")

    run_command(run_recover())


@config_app.command("show")
def config_show() -> None:
    """Display current configuration."""
    try:
        manager = ConfigManager()
        config = manager.load_config()

        console.print("\n[bold]podshelf Configuration[/bold]\n")

        table = Table(show_header=False, box=None)
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="white")

        table.add_row("Config file", str(manager.config_file))
        table.add_row("Storage root", str(manager.get_storage_root()))
        table.add_row("Log level", config.log_level)
        table.add_row("Chunk size", str(config.download.chunk_size))
        table.add_row("Timeout (s)", str(config.download.timeout_seconds))
        table.add_row("Max attempts", str(config.download.max_attempts))

        console.print(table)

    except PodshelfError as e:
        console.print(f"[red]✗[/red] Error: {e}")
        sys.exit(1)


@config_app.command("set-root")
def config_set_root(
    path: Path = typer.Argument(..., help="Absolute directory for podcasts.json and media"),
) -> None:
    """Move the storage root. Existing files are not moved."""
    try:
        manager = ConfigManager()
        root = manager.set_storage_root(path)
        console.print(f"[green]✓[/green] Storage root set to {root}")

    except ValidationError as e:
        console.print(f"[red]✗[/red] {e}")
        if e.suggestion:
            console.print(f"[dim]  {e.suggestion}[/dim]")
        sys.exit(1)
    except PodshelfError as e:
        console.print(f"[red]✗[/red] Error: {e}")
        sys.exit(1)
    except OSError as e:
        console.print(f"[red]✗[/red] Could not create {path}: {e}")
        sys.exit(1)

    if os.environ.get(STORAGE_ROOT_ENV_VAR):
        console.print(
            f"[yellow]⚠[/yellow] {STORAGE_ROOT_ENV_VAR} is set and overrides this value"
        )


if __name__ == "__main__":
    app()
