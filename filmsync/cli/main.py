"""Main CLI entry point for the film sync studio."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from filmsync.errors import (
    CommitError,
    InsufficientCoverageError,
    UnknownClipError,
    UnknownLaneError,
)
from filmsync.models.sync import ClipPositionUpdate, LaneId
from filmsync.models.timeline import (
    GameTimeline,
    format_time_ms,
    parse_lane_id,
    parse_time_to_ms,
)

app = typer.Typer(
    name="filmsync",
    help="Film Sync Studio - line up multi-camera game film",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Configure logging for every command."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def _parse_time(value: str) -> int:
    try:
        return parse_time_to_ms(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _parse_offset(value: str) -> tuple[str, int]:
    clip_id, sep, offset = value.rpartition("=")
    if not sep or not clip_id:
        raise typer.BadParameter(f"Expected CLIP_ID=MS, got {value!r}")
    try:
        return clip_id, int(offset)
    except ValueError:
        raise typer.BadParameter(f"Offset must be whole milliseconds, got {offset!r}")


def _load_timeline(path: Path) -> GameTimeline:
    from filmsync.storage.json_store import JsonFileClipStore

    try:
        return JsonFileClipStore(path).load()
    except ValueError as e:
        console.print(f"[red]Invalid timeline file: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def inspect(
    timeline_file: Path = typer.Argument(
        ...,
        help="Timeline JSON file",
        exists=True,
        dir_okay=False,
    ),
    at: Optional[str] = typer.Option(
        None,
        "--at", "-t",
        help="Show camera coverage at this time (m:ss, h:mm:ss or seconds)",
    ),
):
    """
    Show a timeline's camera lanes and clips.
    """
    timeline = _load_timeline(timeline_file)

    console.print(Panel.fit(
        f"[bold blue]{timeline.video_group_id}[/bold blue]\n"
        f"Duration: {format_time_ms(timeline.total_duration_ms)}",
        border_style="blue",
    ))

    table = Table(title="Lanes")
    table.add_column("Lane", style="cyan")
    table.add_column("Label")
    table.add_column("Clip")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")

    for lane in timeline.lanes:
        for clip in lane.sorted_clips():
            table.add_row(
                str(lane.lane),
                lane.label,
                clip.video_name or clip.id,
                format_time_ms(clip.lane_position_ms),
                format_time_ms(clip.end_ms),
            )

    console.print(table)

    if at is not None:
        _display_coverage(timeline, _parse_time(at))


def _display_coverage(timeline: GameTimeline, time_ms: int):
    cameras = timeline.find_clips_at_time(time_ms)

    console.print(f"\n[bold]Cameras with footage at {format_time_ms(time_ms)}[/bold]\n")

    if not cameras:
        console.print("[red]No cameras have footage at this time.[/red]")
        return

    for camera in cameras:
        console.print(
            f"  [green]●[/green] {camera.lane_label or camera.lane}  "
            f"[dim]{camera.clip_name}[/dim]  "
            f"at {format_time_ms(camera.sync_point_in_clip_ms)} into clip"
        )

    if len(cameras) == 1:
        console.print(
            "[yellow]Only 1 camera has footage here. "
            "Pick a point where at least 2 cameras overlap.[/yellow]"
        )


@app.command()
def sync(
    timeline_file: Path = typer.Argument(
        ...,
        help="Timeline JSON file (updated in place)",
        exists=True,
        dir_okay=False,
    ),
    at: str = typer.Option(
        ...,
        "--at", "-t",
        help="Sync point (m:ss, h:mm:ss or seconds)",
    ),
    anchor: Optional[str] = typer.Option(
        None,
        "--anchor", "-a",
        help="Lane to use as the anchor (defaults to the first covering lane)",
    ),
    offsets: Optional[list[str]] = typer.Option(
        None,
        "--offset", "-o",
        help="Offset for a clip as CLIP_ID=MS; repeatable",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run", "-n",
        help="Show the updates without saving them",
    ),
):
    """
    Apply clip offsets at a sync point and save the new positions.

    Example:
        filmsync sync game.json --at 1:30 --anchor 1 --offset clip-b=750
    """
    sync_time_ms = _parse_time(at)
    parsed_offsets = [_parse_offset(o) for o in offsets or []]
    anchor_lane = parse_lane_id(anchor) if anchor is not None else None

    asyncio.run(_run_sync(timeline_file, sync_time_ms, anchor_lane, parsed_offsets, dry_run))


async def _run_sync(
    timeline_file: Path,
    sync_time_ms: int,
    anchor_lane: Optional[LaneId],
    offsets: list[tuple[str, int]],
    dry_run: bool,
):
    """Run a sync session against a timeline file."""
    from filmsync.engine import FilmStudioEngine
    from filmsync.storage.gateway import PassthroughUrlGateway
    from filmsync.storage.json_store import JsonFileClipStore

    timeline = _load_timeline(timeline_file)
    engine = FilmStudioEngine(
        store=JsonFileClipStore(timeline_file),
        url_gateway=PassthroughUrlGateway(),
    )
    await engine.load_timeline(timeline.video_group_id)

    current_lane = anchor_lane
    if current_lane is None and timeline.lanes:
        current_lane = timeline.lanes[0].lane
    session = engine.open_sync_session(timeline.video_group_id, current_lane, sync_time_ms)

    try:
        session.confirm_sync_time()
        if anchor_lane is not None:
            session.set_anchor(anchor_lane)
        for clip_id, offset_ms in offsets:
            session.set_offset(clip_id, offset_ms)
    except (InsufficientCoverageError, UnknownLaneError, UnknownClipError) as e:
        session.cancel()
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    _display_session(session)

    if dry_run:
        updates = session.build_updates()
        session.cancel()
        _display_updates(updates, title="Planned Updates (dry run)")
        return

    try:
        updates = await engine.commit_session(session.id)
    except CommitError as e:
        console.print(f"[red]Error: {e}[/red]")
        for failure in e.failed:
            console.print(f"  {failure.update.clip_id}: {failure.reason}")
        raise typer.Exit(1)

    _display_updates(updates, title="Saved Updates")


def _display_session(session):
    """Display the cameras at the sync point."""
    table = Table(title=f"Sync at {format_time_ms(session.sync_time_ms)}")
    table.add_column("Lane", style="cyan")
    table.add_column("Clip")
    table.add_column("Offset", justify="right")
    table.add_column("Showing", justify="right")

    for camera in session.cameras:
        offset = "anchor" if camera.is_anchor else f"{camera.offset_ms / 1000:+.1f}s"
        table.add_row(
            camera.lane_label or str(camera.lane),
            camera.clip_name or camera.clip_id,
            offset,
            format_time_ms(camera.seek_position_ms),
        )

    console.print(table)


def _display_updates(updates: list[ClipPositionUpdate], title: str):
    if not updates:
        console.print("[yellow]No cameras adjusted; nothing to save.[/yellow]")
        return

    table = Table(title=title)
    table.add_column("Clip", style="cyan")
    table.add_column("New Position", justify="right")
    table.add_column("ms", justify="right")

    for update in updates:
        table.add_row(
            update.clip_id,
            format_time_ms(update.new_position_ms),
            str(update.new_position_ms),
        )

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h"),
    port: int = typer.Option(8000, "--port", "-p"),
    reload: bool = typer.Option(False, "--reload", "-r"),
):
    """
    Start the API server.
    """
    import uvicorn

    console.print(f"[green]Starting server at http://{host}:{port}[/green]")

    uvicorn.run(
        "filmsync.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def version():
    """Show version information."""
    from filmsync import __version__

    console.print(f"Film Sync Studio v{__version__}")


if __name__ == "__main__":
    app()
