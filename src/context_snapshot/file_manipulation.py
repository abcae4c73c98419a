from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from context_snapshot.comment_stripping import strip_comments
from context_snapshot.config import FileRecord, Skipped, SkipReason, guess_file_type
from context_snapshot.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from context_snapshot.config import ScanConfig

TRUNCATION_MARKER = "# [Truncated at {limit} lines]"


def relpath(path: Path, root: Path, fallback: Path | None = None) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from
        fallback (Path | None): a second root tried when path is not under root

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is under neither root, returns the original path as a string.
    """
    for base in (root, fallback):
        if base is None:
            continue
        try:
            return path.relative_to(base).as_posix()
        except ValueError:
            continue
    return path.as_posix()


def split_lines(content: str) -> list[str]:
    """Split text on ``\\n``; a final newline does not open an extra empty line.

    Args:
        content (str): the text to split

    Returns:
        list[str]: the lines, without their newline characters
    """
    if not content:
        return []
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def count_lines(content: str) -> int:
    """Count the lines of ``content`` the way :func:`split_lines` does."""
    return len(split_lines(content))


def truncate_lines(content: str, max_lines: int) -> str:
    """Cut content to ``max_lines`` lines and append a single marker line.

    Truncating already-truncated content at the same or a larger limit returns it
    unchanged.

    Args:
        content (str): the (possibly stripped) file content
        max_lines (int): the line budget; 0 disables truncation

    Returns:
        str: the content, truncated if it had more than ``max_lines`` lines
    """
    if max_lines <= 0:
        return content
    lines = split_lines(content)
    if len(lines) <= max_lines:
        return content
    return "\n".join([*lines[:max_lines], TRUNCATION_MARKER.format(limit=max_lines)])


def is_binary(data: bytes) -> bool:
    """Treat any NUL byte as proof of binary content."""
    return b"\x00" in data


def build_file_record(path: Path, rel: str, config: ScanConfig) -> FileRecord | Skipped:
    """Read one file and turn it into a FileRecord.

    The file is read in full. Binary content (a NUL byte anywhere) and read
    failures produce a ``Skipped`` outcome instead of an exception, so that one bad
    file never aborts a scan. When ``config.strip_comments`` is set, comments are
    removed according to the extension before the line budget is applied.

    Args:
        path (Path): absolute path of the file to read
        rel (str): the path relative to the project root
        config (ScanConfig): the run configuration

    Returns:
        FileRecord | Skipped: the processed record, or why the file was skipped
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.debug("file_read_failed", path=str(path), error=str(e))
        return Skipped(path=path, reason=SkipReason.READ_ERROR, detail=str(e))

    if is_binary(data):
        logger.debug("file_skipped", path=rel, reason=SkipReason.BINARY.value)
        return Skipped(path=path, reason=SkipReason.BINARY)

    content = data.decode("utf-8", errors="ignore")
    if config.strip_comments:
        content = strip_comments(content, guess_file_type(path))
    content = truncate_lines(content, config.max_lines_per_file)

    return FileRecord(
        path=path,
        rel=rel,
        content=content,
        size=len(content.encode("utf-8")),
        line_count=count_lines(content),
    )


def build_tree_lines(root_name: str, rel_paths: Sequence[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Args:
        root_name (str): the name to use for the root of the tree
        rel_paths (Sequence[str]): the list of file paths relative to the root, using POSIX separators (e.g. "src/main.py")

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    rels = sorted(
        {p.strip("/").replace("\\", "/") for p in rel_paths if p.strip()},
        key=str.lower,
    )
    tree: dict[str, Any] = {}
    for rp in rels:
        cur = tree
        parts = rp.split("/")
        for i, part in enumerate(parts):
            if i == len(parts) - 1:
                cur.setdefault("__files__", set()).add(part)
            else:
                cur = cur.setdefault(part, {})

    lines: list[str] = [root_name]

    def walk(node: dict[str, Any], prefix: str) -> None:
        dirs = sorted([k for k in node if k != "__files__"], key=str.lower)
        files = sorted(node.get("__files__", set()), key=str.lower)
        entries: list[tuple[str, str, Any]] = []
        entries.extend(("dir", d, node[d]) for d in dirs)
        entries.extend(("file", f, None) for f in files)
        for idx, (kind, name, child) in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name + ("/" if kind == "dir" else ""))
            if kind == "dir":
                ext = "    " if last else "│   "
                walk(child, prefix + ext)

    walk(tree, "")
    return lines


def now_iso() -> str:
    """Return the current date and time in ISO 8601 format with timezone.

    Returns:
        str: the current date and time in ISO 8601 format with timezone
    """
    return datetime.now(UTC).astimezone().isoformat(timespec="seconds")
