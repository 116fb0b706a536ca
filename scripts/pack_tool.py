#!/usr/bin/env python3
"""
Command line access to the pack resolution engine.

Usage:
    # Parse a release name or filename
    python -m scripts.pack_tool parse "Breaking.Bad.S05E14.1080p.WEB-DL.x264-RARBG.mkv"

    # Show the info hash and annotated video files of a .torrent
    python -m scripts.pack_tool inspect ./pack.torrent

    # Resolve an episode or a movie inside a pack
    python -m scripts.pack_tool resolve <info_hash> --season 1 --episode 5
    python -m scripts.pack_tool resolve "magnet:?xt=urn:btih:<info_hash>" --season 1 --episode 5
    python -m scripts.pack_tool resolve <info_hash> --title "Shrek 2" --year 2004

    # Cache a .torrent directly, or drop a cached pack
    python -m scripts.pack_tool import-torrent ./pack.torrent --title-id tt0903747
    python -m scripts.pack_tool purge <info_hash>
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from db.config import settings
from db.pack_store import PackStoreError, RedisPackStore
from db.redis_database import REDIS_ASYNC_CLIENT, redis_health_check
from db.schemas.pack import PackRequest, ProviderConfig
from streaming_providers.exceptions import RateLimitException, TorrentParseError
from streaming_providers.pack_resolver import PackResolver
from streaming_providers.parser import PackFileProcessor
from streaming_providers.torrent_mirrors import torrent_metadata_to_listing
from utils.title_parser import is_season_pack, parse_filename
from utils.torrent import content_id_from_reference, parse_torrent_file

logging.basicConfig(
    format="%(levelname)s::%(asctime)s::%(pathname)s::%(lineno)d - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    level=settings.logging_level,
)
logger = logging.getLogger(__name__)

app = typer.Typer(help=f"{settings.addon_name} pack resolution utilities")


def _read_torrent(path: Path):
    try:
        return parse_torrent_file(path.read_bytes())
    except (OSError, TorrentParseError) as error:
        typer.echo(f"❌ Cannot read {path}: {error}")
        raise typer.Exit(1)


@app.command()
def parse(name: str = typer.Argument(..., help="Release title or filename")):
    """Print the parsed fields of a filename as JSON."""
    typer.echo(json.dumps(parse_filename(name).to_dict(), indent=2))


@app.command()
def inspect(
    torrent_path: Path = typer.Argument(..., exists=True, dir_okay=False, help=".torrent file"),
    all_files: bool = typer.Option(False, "--all", help="List non-video files too"),
):
    """Show the info hash and files of a .torrent."""
    metadata = _read_torrent(torrent_path)
    typer.echo(f"Info hash: {metadata.info_hash}")
    typer.echo(f"Name:      {metadata.name}")
    typer.echo(f"Files:     {len(metadata.files)} ({metadata.total_size} bytes)")
    typer.echo(f"Season pack: {'yes' if is_season_pack(metadata.name) else 'no'}")

    if all_files:
        for file in metadata.files:
            typer.echo(f"  [{file.index}] {file.path} ({file.size})")
        return

    processor = PackFileProcessor(torrent_metadata_to_listing(metadata))
    for file_info in processor.parse_all_episodes():
        label = (
            f"S{file_info.season:02d}E{file_info.episode:02d}"
            if file_info.is_structured
            else "------"
        )
        typer.echo(f"  [{file_info.index}] {label} {file_info.path} ({file_info.size})")


@app.command()
def resolve(
    info_hash: str = typer.Argument(..., help="Info hash or magnet link of the pack"),
    season: Optional[int] = typer.Option(None, help="Season number"),
    episode: Optional[int] = typer.Option(None, help="Episode number"),
    title: list[str] = typer.Option([], "--title", "-t", help="Movie title, repeatable"),
    year: Optional[int] = typer.Option(None, help="Movie release year"),
    title_id: Optional[str] = typer.Option(None, help="Id linked to the matched file"),
    no_mirrors: bool = typer.Option(False, "--no-mirrors", help="Skip public torrent mirrors"),
):
    """Resolve an episode or a movie inside a pack."""
    try:
        request = PackRequest(
            content_id=info_hash,
            season=season,
            episode=episode,
            titles=title,
            year=year,
            title_id=title_id,
        )
    except ValidationError as error:
        typer.echo(f"❌ Invalid request: {error}")
        raise typer.Exit(2)

    async def run_resolve():
        resolver = PackResolver(RedisPackStore())
        config = ProviderConfig(use_public_mirrors=not no_mirrors)
        try:
            return await resolver.resolve(request, config)
        finally:
            await REDIS_ASYNC_CLIENT.aclose()

    try:
        resolution = asyncio.run(run_resolve())
    except RateLimitException as error:
        typer.echo(f"⏳ Rate limited, try again later: {error.message}")
        raise typer.Exit(3)

    typer.echo(resolution.model_dump_json(indent=2))
    if resolution.file is None:
        raise typer.Exit(1)


@app.command("import-torrent")
def import_torrent(
    torrent_path: Path = typer.Argument(..., exists=True, dir_okay=False, help=".torrent file"),
    pack_title: Optional[str] = typer.Option(None, help="Override the pack title"),
    title_id: Optional[str] = typer.Option(None, help="Series id linked to every file"),
):
    """Cache the annotated video files of a .torrent."""
    content = torrent_path.read_bytes()

    async def run_import():
        resolver = PackResolver(RedisPackStore())
        try:
            return await resolver.index_torrent_file(
                content, pack_title=pack_title, title_id=title_id
            )
        finally:
            await REDIS_ASYNC_CLIENT.aclose()

    try:
        count = asyncio.run(run_import())
    except (TorrentParseError, PackStoreError) as error:
        typer.echo(f"❌ Import failed: {error}")
        raise typer.Exit(1)
    typer.echo(f"✅ Cached {count} files")


@app.command()
def purge(
    info_hash: str = typer.Argument(..., help="Info hash or magnet link of the pack"),
):
    """Drop a pack from the cache."""
    try:
        content_id = content_id_from_reference(info_hash)
    except ValueError as error:
        typer.echo(f"❌ {error}")
        raise typer.Exit(2)

    async def run_purge():
        try:
            return await RedisPackStore().delete_pack_index(content_id)
        finally:
            await REDIS_ASYNC_CLIENT.aclose()

    try:
        deleted = asyncio.run(run_purge())
    except PackStoreError as error:
        typer.echo(f"❌ Purge failed: {error}")
        raise typer.Exit(1)
    typer.echo(f"✅ Removed {deleted} keys")


@app.command()
def health():
    """Check the Redis connection."""

    async def run_health():
        try:
            return await redis_health_check(REDIS_ASYNC_CLIENT)
        finally:
            await REDIS_ASYNC_CLIENT.aclose()

    status = asyncio.run(run_health())
    typer.echo(json.dumps(status))
    if status["status"] != "healthy":
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
