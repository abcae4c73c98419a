from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from context_snapshot import __version__
from context_snapshot.config import FileRecord, ScanStats
from context_snapshot.exceptions import OutputWriteError
from context_snapshot.output_construction import (
    build_jsonl,
    build_markdown,
    chunk_content,
    default_output_path,
    display_name,
    group_records,
    write_output,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _rec(rel: str, content: str) -> FileRecord:
    return FileRecord(
        path=Path("/project") / rel,
        rel=rel,
        content=content,
        size=len(content.encode("utf-8")),
        line_count=len(content.splitlines()),
    )


def _stats(recs: list[FileRecord]) -> ScanStats:
    return ScanStats(files_processed=len(recs), total_size=sum(r.size for r in recs), roots_scanned=1)


@pytest.mark.unit
def test_chunk_content_splits_on_line_boundaries() -> None:
    chunks = list(chunk_content("aaa\nbbb\nccc\n", chunk_chars=8))

    assert chunks == [(1, 2, "aaa\nbbb\n"), (3, 3, "ccc\n")]


@pytest.mark.unit
def test_chunk_content_empty_text() -> None:
    assert list(chunk_content("", chunk_chars=10)) == [(0, 0, "")]


@pytest.mark.unit
def test_display_name_known_and_unknown_extensions() -> None:
    assert display_name("php") == "PHP"
    assert display_name("js") == "JavaScript"
    assert display_name("twig") == "HTML"
    assert display_name("proto") == "PROTO"


@pytest.mark.unit
def test_group_records_orders_largest_group_first() -> None:
    recs = [_rec("a.php", "1"), _rec("b.js", "2"), _rec("c.js", "3"), _rec("d.css", "4")]

    groups = group_records(recs)

    assert list(groups) == ["js", "css", "php"]
    assert [r.rel for r in groups["js"]] == ["b.js", "c.js"]


@pytest.mark.unit
def test_build_markdown_sections() -> None:
    recs = [
        _rec("src/Kernel.php", "<?php\nclass Kernel {}"),
        _rec("src/Entity/User.php", "<?php\nclass User {}"),
        _rec("assets/app.js", "console.log(1);"),
    ]

    md = build_markdown("demo", recs, _stats(recs))

    assert md.startswith("# demo\n\nProject snapshot generated for AI analysis and code review.\n")
    assert "## Project Structure" in md
    assert "├── assets/" in md
    assert "### PHP Files" in md
    assert "#### src/Entity/User.php\n\n```php\n<?php\nclass User {}\n```" in md
    assert "#### assets/app.js\n\n```js\nconsole.log(1);\n```" in md
    assert md.index("### PHP Files") < md.index("### JavaScript Files")
    assert "| PHP | `php` | 2 |" in md
    assert "- **Total files**: 3" in md
    assert md.endswith("\n")


@pytest.mark.unit
def test_build_markdown_metadata_block() -> None:
    recs = [_rec("a.php", "x" * 2048)]

    md = build_markdown("demo", recs, _stats(recs))

    block = md.split("```mcp-metadata\n", 1)[1].split("\n```", 1)[0]
    metadata = json.loads(block)
    assert metadata["format_version"] == "1.0.0"
    assert metadata["num_files"] == 1
    assert metadata["total_size_kb"] == 2.0
    assert metadata["generator"] == f"context-snapshot {__version__}"
    assert metadata["generated_at"]


@pytest.mark.unit
def test_build_jsonl_emits_one_object_per_chunk(tmp_path: Path) -> None:
    recs = [_rec("a.php", "one\ntwo\n"), _rec("b.php", "three\n")]

    lines = build_jsonl(tmp_path, recs, chunk_chars=4).splitlines()

    items = [json.loads(line) for line in lines]
    assert [(i["path"], i["start_line"], i["end_line"]) for i in items] == [
        ("a.php", 1, 1),
        ("a.php", 2, 2),
        ("b.php", 1, 1),
    ]
    assert items[0]["repo_root"] == str(tmp_path)
    assert items[0]["language"] == "php"


@pytest.mark.unit
def test_default_output_path_is_timestamped() -> None:
    path = default_output_path()

    assert path.parent == Path("snapshots")
    assert path.name.startswith("snapshot_")
    assert path.suffix == ".mcp"


@pytest.mark.unit
def test_write_output_creates_parent_directories(tmp_path: Path) -> None:
    target = tmp_path / "snapshots" / "nested" / "out.mcp"

    write_output(target, "content\n")

    assert target.read_text(encoding="utf-8") == "content\n"


@pytest.mark.unit
def test_write_output_wraps_os_errors(tmp_path: Path, mocker: MockerFixture) -> None:
    target = tmp_path / "out.mcp"
    mocker.patch.object(Path, "write_text", side_effect=PermissionError("denied"))

    with pytest.raises(OutputWriteError) as exc_info:
        write_output(target, "content")

    assert exc_info.value.output == target
    assert "denied" in exc_info.value.reason
