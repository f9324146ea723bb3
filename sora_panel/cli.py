"""
Sora Panel CLI - create, inspect and download Sora videos.

Usage:
    sora-panel --help                       Show all commands
    sora-panel create [PROMPT...] --file X  Create a video, optionally guided by a reference
    sora-panel status <video_id>            Show a video's status
    sora-panel list                         List videos
    sora-panel download <video_id> [path]   Save a finished video
    sora-panel delete <video_id>            Delete a video
    sora-panel serve                        Start the web control panel
"""

import asyncio
import json
import subprocess
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import typer
from openai import OpenAIError
from pydantic import ValidationError

from sora_panel.config import Settings, get_settings
from sora_panel.core.exceptions import SoraPanelError, UpstreamAPIError
from sora_panel.core.logging import setup_logging
from sora_panel.dependencies import get_video_client
from sora_panel.video.client import VideoClient, to_jsonable

app = typer.Typer(
    name="sora-panel",
    help="Sora Panel CLI - manage OpenAI Sora video generations",
    no_args_is_help=True,
)

EXAMPLE_PROMPT = (
    "A cinematic slow-motion shot of glowing jellyfish floating through a neon coral reef."
)


# --- Output helpers ---


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _dump(value: Any) -> str:
    return json.dumps(to_jsonable(value), indent=2, default=str)


def _load_settings() -> Settings:
    try:
        settings = get_settings()
    except ValidationError as e:
        _print_error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from e
    setup_logging(debug=settings.debug)
    return settings


def _run(call: Callable[[VideoClient], Awaitable[Any]]) -> Any:
    """Run one client call, reporting failures and exiting non-zero."""
    _load_settings()
    client = get_video_client()

    try:
        return asyncio.run(call(client))
    except UpstreamAPIError as e:
        _print_error(f"OpenAI API error: {e.status_code}")
        typer.echo(json.dumps(e.details, indent=2) if e.details else str(e), err=True)
        raise typer.Exit(1) from e
    except (SoraPanelError, OpenAIError, OSError) as e:
        _print_error(str(e))
        raise typer.Exit(1) from e


@app.command()
def create(
    prompt: list[str] | None = typer.Argument(None, help="Prompt text (words are joined)"),
    file: str | None = typer.Option(
        None, "--file", "-f", help="Image or video used as input reference"
    ),
):
    """Create a new video, optionally guided by a media file."""
    settings = _load_settings()

    text = " ".join(prompt or []).strip() or EXAMPLE_PROMPT
    reference_path = (file or settings.sora_input_reference or "").strip()

    payload: dict[str, Any] = {
        "model": settings.sora_default_model,
        "prompt": text,
        "size": settings.sora_default_size,
    }
    if reference_path:
        payload["input_reference_path"] = reference_path

    typer.echo("Submitting create video request with payload:")
    typer.echo(json.dumps(payload, indent=2))

    video = _run(lambda client: client.create_video(payload))

    typer.echo("Create video response:")
    typer.echo(_dump(video))


@app.command()
def status(video_id: str = typer.Argument(..., help="Video id")):
    """Fetch the status/details for a specific video."""
    video = _run(lambda client: client.get_video(video_id))
    typer.echo(f"Video {video_id}:")
    typer.echo(_dump(video))


@app.command("list")
def list_videos():
    """List all videos."""
    videos = _run(lambda client: client.list_videos())
    typer.echo("Videos:")
    typer.echo(_dump(videos))


@app.command()
def download(
    video_id: str = typer.Argument(..., help="Video id"),
    path: Path | None = typer.Argument(None, help="Destination file"),
):
    """Download a finished video to the downloads directory (or a provided path)."""
    settings = _load_settings()
    destination = path or settings.sora_download_dir / f"{video_id}.mp4"

    saved = _run(lambda client: client.download_video(video_id, destination))
    _print_success(f"Video {video_id} downloaded to {saved}")


@app.command()
def delete(video_id: str = typer.Argument(..., help="Video id")):
    """Delete a video by id."""
    _run(lambda client: client.delete_video(video_id))
    _print_success(f"Video {video_id} deleted.")


@app.command("help")
def show_help(ctx: typer.Context):
    """Show this message."""
    typer.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to run on (default: PORT)"),
):
    """Start the web control panel."""
    settings = _load_settings()

    cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "sora_panel.main:app",
        "--host",
        host,
        "--port",
        str(port or settings.port),
    ]
    if reload:
        cmd.append("--reload")

    result = subprocess.run(cmd, check=False)
    raise typer.Exit(result.returncode)


if __name__ == "__main__":
    app()
