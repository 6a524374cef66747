# SPDX-License-Identifier: AGPL-3.0-or-later
"""Command line interface for the conversion pipeline."""

from __future__ import annotations

import argparse
import logging
import sys

from .loaders import expand_paths
from .pipeline import batch_convert
from .settings import get_settings
from .writer import write_jsonl, write_skip_report


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert markdown/MDX documents into knowledge-base records"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert_parser = subparsers.add_parser("convert", help="Convert documents to JSONL")
    convert_parser.add_argument("paths", nargs="+", help="Files or directories to convert")
    convert_parser.add_argument("--out", required=True, help="Destination JSONL file ('-' for stdout)")
    convert_parser.add_argument(
        "--format",
        action="store_true",
        help="Trim record fields and drop empty tags before writing",
    )
    convert_parser.add_argument(
        "--workers",
        type=int,
        default=0,
        help="Number of concurrent conversions (0 uses the configured default)",
    )
    convert_parser.add_argument(
        "--backend",
        choices=["auto", "sync", "threadpool", "asyncio"],
        help="Concurrency backend (defaults to the configured backend)",
    )
    convert_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log per-document diagnostics at INFO level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    level = logging.INFO if args.verbose else getattr(
        logging, settings.logging.level, logging.WARNING
    )
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "convert":
        files = expand_paths(args.paths, settings.pipeline.eligible_extensions)
        batch = batch_convert(
            files,
            settings=settings,
            concurrency=args.workers,
            backend=args.backend,
            format=args.format,
        )
        write_jsonl(batch.records, args.out)
        write_skip_report(batch.rejected, batch.failed)
        if files and not batch.records:
            return 1
        return 0
    raise ValueError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
