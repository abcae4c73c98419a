from __future__ import annotations

import io
import json
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from context_snapshot import __version__
from context_snapshot.config import EXT2LANG, FileType
from context_snapshot.exceptions import OutputWriteError
from context_snapshot.file_manipulation import build_tree_lines, now_iso
from context_snapshot.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from context_snapshot.config import FileRecord, ScanStats

FORMAT_VERSION = "1.0.0"

_DISPLAY_NAME: dict[FileType, str] = {
    FileType.PHP: "PHP",
    FileType.JAVASCRIPT: "JavaScript",
    FileType.TYPESCRIPT: "TypeScript",
    FileType.PYTHON: "Python",
    FileType.HTML: "HTML",
    FileType.CSS: "CSS",
    FileType.SCSS: "SCSS",
    FileType.JSON: "JSON",
    FileType.XML: "XML",
    FileType.YAML: "YAML",
    FileType.MARKDOWN: "Markdown",
    FileType.SQL: "SQL",
    FileType.BASH: "Shell",
    FileType.TEXT: "Text",
    FileType.INI: "INI",
    FileType.TOML: "TOML",
    FileType.GO: "Go",
    FileType.RUST: "Rust",
    FileType.JAVA: "Java",
    FileType.KOTLIN: "Kotlin",
    FileType.SWIFT: "Swift",
    FileType.CSHARP: "C#",
    FileType.RUBY: "Ruby",
    FileType.C: "C",
    FileType.CPP: "C++",
}


def display_name(extension: str) -> str:
    """Human-readable language name of an extension (upper-cased extension when unknown)."""
    file_type = EXT2LANG.get(f".{extension}", FileType.OTHER)
    return _DISPLAY_NAME.get(file_type, extension.upper())


def group_records(recs: Sequence[FileRecord]) -> dict[str, list[FileRecord]]:
    """Group records by extension, largest group first (ties broken by extension)."""
    groups: dict[str, list[FileRecord]] = defaultdict(list)
    for rec in recs:
        groups[rec.extension].append(rec)
    return dict(sorted(groups.items(), key=lambda kv: (-len(kv[1]), kv[0])))


def _kb(size: int) -> float:
    return round(size / 1024, 2)


def build_markdown(
    project_name: str,
    recs: Sequence[FileRecord],
    stats: ScanStats,
) -> str:
    """Build a Markdown Context Pack (MCP) document from the scan results.

    The document holds a project header, an ``mcp-metadata`` JSON block, a visual
    tree of the included files, the file contents grouped by extension in fenced
    code blocks, and a summary with a per-extension breakdown.

    Args:
        project_name (str): name shown in the header (usually the project root's name)
        recs (Sequence[FileRecord]): the records, in scan order
        stats (ScanStats): run totals

    Returns:
        str: the rendered document
    """
    out = io.StringIO()
    out.write(f"# {project_name}\n\n")
    out.write("Project snapshot generated for AI analysis and code review.\n\n")

    metadata = {
        "format_version": FORMAT_VERSION,
        "generated_at": now_iso(),
        "num_files": stats.files_processed,
        "total_size_kb": _kb(stats.total_size),
        "generator": f"context-snapshot {__version__}",
    }
    out.write("```mcp-metadata\n")
    out.write(json.dumps(metadata, indent=4, ensure_ascii=False))
    out.write("\n```\n\n")

    out.write("## Project Structure\n\n")
    out.write("```text\n")
    out.write("\n".join(build_tree_lines(project_name, [r.rel for r in recs])))
    out.write("\n```\n\n")

    groups = group_records(recs)
    out.write("## Files\n\n")
    for ext, members in groups.items():
        out.write(f"### {display_name(ext)} Files\n\n")
        for rec in members:
            out.write(f"#### {rec.rel}\n\n")
            out.write(f"```{rec.extension}\n{rec.content}\n```\n\n")

    out.write("## Summary\n\n")
    out.write("### Statistics\n\n")
    out.write(f"- **Total files**: {stats.files_processed}\n")
    out.write(f"- **Total size**: {_kb(stats.total_size)} KB\n\n")
    out.write("### File Breakdown\n\n")
    out.write("| Language | Extension | Files | Size (KB) |\n")
    out.write("|----------|-----------|-------|-----------|\n")
    for ext in sorted(groups):
        members = groups[ext]
        size_kb = _kb(sum(r.size for r in members))
        out.write(f"| {display_name(ext)} | `{ext}` | {len(members)} | {size_kb} |\n")

    return out.getvalue().rstrip() + "\n"


def chunk_content(text: str, chunk_chars: int) -> Iterator[tuple[int, int, str]]:
    """Chunk a text string into pieces of at most `chunk_chars` characters, splitting on line boundaries.

    Args:
        text (str): the text to chunk
        chunk_chars (int): the maximum number of characters in each chunk

    Yields:
        Iterator[tuple[int, int, str]]: an iterator of tuples containing the start line number,
            end line number, and chunk text for each chunk
    """
    if not text:
        yield (0, 0, "")
        return
    lines = text.splitlines()
    buf: list[str] = []
    cur = 0
    start_line = 1
    for i, ln in enumerate(lines, start=1):
        ln2 = ln + "\n"
        if cur + len(ln2) > chunk_chars and buf:
            yield (start_line, i - 1, "".join(buf))
            buf = []
            cur = 0
            start_line = i
        buf.append(ln2)
        cur += len(ln2)
    if buf:
        yield (start_line, start_line + len(buf) - 1, "".join(buf))


def build_jsonl(
    project_root: Path,
    recs: Sequence[FileRecord],
    *,
    chunk_chars: int,
) -> str:
    """Render the records as JSON lines, one object per line-aligned chunk.

    Args:
        project_root (Path): written into every object as ``repo_root``
        recs (Sequence[FileRecord]): the records to export
        chunk_chars (int): the maximum number of characters per chunk

    Returns:
        str: the JSONL text
    """
    buf = io.StringIO()
    for rec in recs:
        for start, end, chunk in chunk_content(rec.content, chunk_chars=chunk_chars):
            item = {
                "repo_root": str(project_root),
                "path": rec.rel,
                "language": rec.language,
                "size": rec.size,
                "line_count": rec.line_count,
                "start_line": start,
                "end_line": end,
                "text": chunk,
            }
            buf.write(json.dumps(item, ensure_ascii=False) + "\n")
    return buf.getvalue()


def default_output_path() -> Path:
    """Timestamped default output location."""
    return Path("snapshots") / f"snapshot_{datetime.now().astimezone():%Y_%m_%d_%H%M%S}.mcp"


def write_output(path: Path, text: str) -> None:
    """Persist the rendered snapshot, creating parent directories as needed.

    Args:
        path (Path): the output file
        text (str): the rendered content

    Raises:
        OutputWriteError: if the directory cannot be created or the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise OutputWriteError(output=path, reason=str(e)) from e
    logger.info("snapshot_written", output=str(path), bytes=len(text.encode("utf-8")))
