from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from .core.config import Settings, get_settings
from .core.db import create_engine, create_session_factory, init_schema
from .core.errors import ProbeError
from .core.logging import configure_logging, level_from_name
from .core.storage import LibraryStorage
from .ingest.metadata import probe_media
from .services.ingest_service import Aborted, IngestPipeline, iter_file_chunks
from .services.video_index import VideoIndex

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level), fmt="console")

    if getattr(args, "check", False):
        _run_environment_check(settings)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args, settings)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MeTube library maintenance CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    init_parser = subparsers.add_parser("init-db", help="Create the video index tables")
    init_parser.set_defaults(func=_cmd_init_db)

    probe_parser = subparsers.add_parser("probe", help="Run ffprobe and print the parsed report sections")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    ingest_parser = subparsers.add_parser("ingest", help="Add a local video file to the library")
    ingest_parser.add_argument("--file", required=True, help="Path to the source media file")
    ingest_parser.add_argument("--title", default=None, help="Title overriding the embedded one")
    ingest_parser.add_argument("--description", default=None, help="Description overriding the embedded one")
    ingest_parser.set_defaults(func=_cmd_ingest)
    return parser


def _resolve_media(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.is_file():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _cmd_init_db(args: argparse.Namespace, settings: Settings) -> None:
    async def _runner() -> None:
        engine = create_engine(settings)
        try:
            await init_schema(engine)
        finally:
            await engine.dispose()

    asyncio.run(_runner())
    console.print(f"[green]Video index ready at {settings.database_url}[/]")


def _cmd_probe(args: argparse.Namespace, settings: Settings) -> None:
    media_path = _resolve_media(args.file)
    try:
        sections = probe_media(media_path, settings)
    except ProbeError as exc:
        console.print(f"[red]{exc}[/]")
        sys.exit(1)
    console.print_json(data=[{"name": section.name, "fields": section.fields} for section in sections])


def _cmd_ingest(args: argparse.Namespace, settings: Settings) -> None:
    """Run the upload pipeline on a local file.

    The source file is copied, never moved: it is streamed in like an upload.
    """
    media_path = _resolve_media(args.file)

    async def _runner():
        engine = create_engine(settings)
        try:
            await init_schema(engine)
            pipeline = IngestPipeline(
                settings,
                LibraryStorage.from_settings(settings),
                VideoIndex(create_session_factory(engine)),
            )
            return await pipeline.run(
                iter_file_chunks(media_path, settings.upload_chunk_size),
                media_path.name,
                title=args.title,
                description=args.description,
            )
        finally:
            await engine.dispose()

    outcome = asyncio.run(_runner())
    if isinstance(outcome, Aborted):
        console.print(f"[red]Ingest aborted while {outcome.stage}: {outcome.error}[/]")
        sys.exit(1)
    console.print_json(data=outcome.record.as_dict())
    console.print(f"[green]Added {outcome.record.id} at {settings.library_path / outcome.record.path}[/]")


def _run_environment_check(settings: Settings) -> None:
    ok = True
    for label, binary in (("ffprobe", settings.ffprobe_path), ("ffmpeg", settings.ffmpeg_path)):
        location = shutil.which(binary)
        if location:
            console.print(f"[green]{label}[/]: {location}")
        else:
            console.print(f"[red]{label}[/]: not found ({binary})")
            ok = ok and label != "ffprobe"
    console.print(f"library: {settings.library_path}")
    console.print(f"incoming: {settings.incoming_path}")
    if not ok:
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
