# =============================================================================
# src/cli/commands.py — Operator Commands
# =============================================================================
#
# Command-line access to the knowledge vault without going through the API:
#
#   stats     — file count, total size, per-type counts, uploads in 24 h
#   list      — newest completed files (optionally filtered by MIME type)
#   cleanup   — soft-delete uploads stuck in "uploading" for N hours
#   ocr       — recognise text in a local image file (no database needed)
#
# Typical usage:
#   python -m src.cli stats
#   python -m src.cli list --mimetype image --limit 20
#   python -m src.cli cleanup --hours 12
#   python -m src.cli ocr scan.png --language eng --json
#
# Logs always go to stderr so stdout carries only command output; --quiet
# raises the log level to WARNING.
# =============================================================================

"""Operator CLI for the knowledgeVault storage and OCR services."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from src.models.file import FileQuery
from src.models.ocr import OCROptions
from src.utils.errors import KnowledgeVaultError
from src.utils.formatting import format_file_size, truncate
from src.utils.logging import configure_logging

_LIST_NAME_WIDTH = 40


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def run_stats(components: dict[str, Any], json_output: bool) -> int:
    stats = await components["storage"].get_file_stats()
    if json_output:
        print(json.dumps(stats.model_dump(), indent=2))
        return 0

    print(f"Files:           {stats.total_files}")
    print(f"Total size:      {format_file_size(stats.total_size)}")
    print(f"Last 24 hours:   {stats.recent_uploads}")
    for mimetype, count in sorted(stats.files_by_type.items(), key=lambda item: -item[1]):
        print(f"  {mimetype:<30} {count}")
    return 0


async def run_list(
    components: dict[str, Any],
    mimetype: str | None,
    limit: int,
    json_output: bool,
) -> int:
    files = await components["storage"].query_files(FileQuery(mimetype=mimetype, limit=limit))
    if json_output:
        print(json.dumps([f.model_dump(mode="json") for f in files], indent=2, ensure_ascii=False))
        return 0

    if not files:
        print("No files found.")
        return 0
    for f in files:
        name = truncate(f.original_name, _LIST_NAME_WIDTH)
        storage = "gridfs" if f.gridfs_id else "inline"
        print(
            f"{f.id}  {name:<{_LIST_NAME_WIDTH}}  {f.mimetype:<24} "
            f"{format_file_size(f.size):>10}  {storage:<6}  {f.uploaded_at:%Y-%m-%d %H:%M}"
        )
    return 0


async def run_cleanup(components: dict[str, Any], hours: float) -> int:
    cleaned = await components["storage"].cleanup_expired_uploads(hours_old=hours)
    print(f"Cleaned {cleaned} expired upload(s) older than {hours:g} hours.")
    return 0


async def run_ocr(
    components: dict[str, Any],
    image_path: Path,
    language: str | None,
    json_output: bool,
) -> int:
    if not image_path.exists():
        print(f"Error: File not found: {image_path}", file=sys.stderr)
        return 1

    ocr_service = components["ocr_service"]
    language = language or ocr_service.default_language
    result = await ocr_service.recognize(image_path.read_bytes(), OCROptions(language=language))

    if json_output:
        payload = {
            "text": result.text,
            "confidence": result.confidence,
            "language": language,
            "engine": result.provider_used,
            "processingTime": result.processing_time_ms,
            "imageWidth": result.image_width,
            "imageHeight": result.image_height,
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(
            f"# {image_path.name}: confidence {result.confidence:.1f}, "
            f"{result.processing_time_ms} ms ({result.provider_used})",
            file=sys.stderr,
        )
        print(result.text)
    return 0


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    if args.command == "stats":
        return await run_stats(components, args.json_output)
    if args.command == "list":
        return await run_list(components, args.mimetype, args.limit, args.json_output)
    if args.command == "cleanup":
        hours = args.hours if args.hours is not None else components.get("cleanup_hours", 24)
        return await run_cleanup(components, hours)
    if args.command == "ocr":
        return await run_ocr(components, Path(args.image).resolve(), args.language, args.json_output)
    raise ValueError(f"Unknown command: {args.command}")


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Inspect and maintain the knowledgeVault file store.",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors (to stderr).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    stats = subparsers.add_parser("stats", help="Show file statistics.")
    stats.add_argument("--json", action="store_true", dest="json_output")

    listing = subparsers.add_parser("list", help="List stored files, newest first.")
    listing.add_argument("--mimetype", default=None, help="Case-insensitive MIME type filter.")
    listing.add_argument("--limit", type=int, default=50)
    listing.add_argument("--json", action="store_true", dest="json_output")

    cleanup = subparsers.add_parser("cleanup", help="Remove uploads stuck in 'uploading'.")
    cleanup.add_argument(
        "--hours",
        type=float,
        default=None,
        help="Age threshold in hours (default: storage.cleanup_hours, 24).",
    )

    ocr = subparsers.add_parser("ocr", help="Recognise text in a local image.")
    ocr.add_argument("image", help="Path to the image file.")
    ocr.add_argument("--language", "-l", default=None, help="Tesseract language, e.g. chi_sim+eng.")
    ocr.add_argument("--json", action="store_true", dest="json_output")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, build the services and run one command."""
    args = build_parser().parse_args(argv)

    # Deferred import: src.main loads settings and wires every component.
    from src.main import build_components, settings

    configure_logging(
        log_level="WARNING" if args.quiet else settings.log_level,
        stream=sys.stderr,
    )

    components = build_components()
    try:
        exit_code = asyncio.run(_run(args, components))
    except KnowledgeVaultError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    finally:
        components["mongo"].close()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
