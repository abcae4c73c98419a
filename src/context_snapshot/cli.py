"""
context_snapshot: capture a project as a single document for an LLM.

Overview
--------
The command walks one or more scan roots, applies the exclusion rules (built-in
defaults, ``.gitignore``, options file and ``--ignore`` patterns), optionally
strips comments, truncates long files and writes either:

1) **Markdown Context Pack (`--format md`, default)**: a header, an
   ``mcp-metadata`` JSON block, the project tree, every file in a fenced block
   grouped by extension, and summary statistics.

2) **JSONL (`--format jsonl`)**: a stream of chunked file contents, suitable
   for ingestion by RAG pipelines or custom tools.

Usage
-----
Run `python -m context_snapshot.cli --help` for full options. Common examples:
    - Snapshot the current directory:
        uv run context-snapshot

    - Two roots, comments stripped, custom output:
        uv run context-snapshot src config --strip-comments -o snapshots/app.mcp

    - Only PHP and JavaScript, with extra ignores:
        uv run context-snapshot --extensions php,js --ignore "*.min.js" --ignore docs/
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from context_snapshot import __version__
from context_snapshot.exceptions import ConfigurationError, OutputWriteError
from context_snapshot.logging import logger, setup_logging
from context_snapshot.output_construction import build_jsonl, build_markdown, default_output_path, write_output
from context_snapshot.scanner import ScanOrchestrator
from context_snapshot.settings import Settings

if TYPE_CHECKING:
    from collections.abc import Sequence


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="context-snapshot",
        description="Capture a project snapshot for LLM consumption (mcp/jsonl).",
    )
    p.add_argument("paths", nargs="*", default=[], help="Scan roots (default: current directory).")
    p.add_argument("--project-root", type=Path, default=None, help="Root for relative paths (default: cwd).")
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file (default: snapshots/snapshot_<timestamp>.mcp).",
    )
    p.add_argument("--format", type=str, choices=["md", "jsonl"], default="", help="Force format.")
    p.add_argument("--config", type=Path, default=None, help="YAML options file.")
    p.add_argument("--no-gitignore", action="store_true", default=None, help="Do not honor .gitignore.")
    p.add_argument(
        "--include-vendors",
        action="store_true",
        default=None,
        help="Descend into vendor/ and node_modules/.",
    )
    p.add_argument(
        "--include-hidden",
        action="store_true",
        default=None,
        help="Descend into directories starting with a dot.",
    )
    p.add_argument("--strip-comments", action="store_true", default=None, help="Remove comments.")
    p.add_argument("--max-files", type=int, default=None, help="Maximum number of files (0 = unlimited).")
    p.add_argument("--max-size", type=int, default=None, help="Maximum file size in KB (0 = unlimited).")
    p.add_argument("--max-lines", type=int, default=None, help="Maximum lines per file (0 = unlimited).")
    p.add_argument("--extensions", type=str, default="", help="Comma list of extensions to include.")
    p.add_argument(
        "--ignore",
        action="append",
        default=[],
        help="Extra ignore pattern (repeatable).",
    )
    p.add_argument("--chunk-chars", type=int, default=24_000, help="Chunk size for jsonl.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("-v", "--verbose", action="store_true", help="Log per-file decisions.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = p.parse_args(argv)
    try:
        return Settings(**vars(args))
    except ValidationError as e:
        p.error(str(e))


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file or settings.verbose:
        setup_logging(settings.log_file or None, verbose=settings.verbose, force=True)

    try:
        config = settings.to_scan_config()
    except ConfigurationError as e:
        logger.error("configuration_error", source=e.source, message=e.message)
        print(f"Configuration error ({e.source}): {e.message}")
        return 1

    result = ScanOrchestrator(config).run()
    for warning in result.warnings:
        print(f"Warning: {warning}")

    if not result.records:
        print("Warning: No files found matching the criteria.")
        return 0

    out_path = settings.output or default_output_path()
    fmt = settings.output_format(out_path)
    if fmt == "jsonl":
        content = build_jsonl(config.project_root, result.records, chunk_chars=settings.chunk_chars)
    else:
        content = build_markdown(config.project_root.name, result.records, result.stats)

    try:
        write_output(out_path, content)
    except OutputWriteError as e:
        logger.error("output_write_failed", output=str(e.output), reason=e.reason)
        print(f"Error: {e.message} {e.output}: {e.reason}")
        return 1

    stats = result.stats
    print(f"Files processed: {stats.files_processed}")
    print(f"Total size: {stats.total_size / 1024:.2f} KB")
    print(f"Wrote {out_path} format={fmt}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
