from __future__ import annotations

from pathlib import Path

import pytest

from context_snapshot import __version__, cli


@pytest.mark.unit
def test_parse_args_parses_paths_and_limits() -> None:
    max_files = 25
    settings = cli.parse_args(
        [
            "src",
            "config",
            "-o",
            "out.mcp",
            "--max-files",
            str(max_files),
            "--max-size",
            "64",
            "--strip-comments",
            "--ignore",
            "docs/",
            "--ignore",
            "*.twig",
            "--extensions",
            "php,js",
        ],
    )

    assert settings.paths == ["src", "config"]
    assert settings.output == Path("out.mcp")
    assert settings.max_files == max_files
    assert settings.max_size == 64
    assert settings.strip_comments is True
    assert settings.ignore == ["docs/", "*.twig"]
    assert settings.extensions == "php,js"


@pytest.mark.unit
def test_parse_args_leaves_unset_options_to_lower_layers() -> None:
    settings = cli.parse_args([])

    assert settings.paths == []
    assert settings.output is None
    assert settings.max_files is None
    assert settings.strip_comments is None
    assert settings.no_gitignore is None
    assert settings.include_vendors is None


@pytest.mark.unit
def test_parse_args_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["--version"])

    assert exc_info.value.code == 0
    captured = capsys.readouterr()
    assert __version__ in captured.out


@pytest.mark.unit
def test_parse_args_rejects_negative_limits(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["--max-files", "-1"])

    assert exc_info.value.code == 2
    assert "max_files" in capsys.readouterr().err


@pytest.mark.unit
def test_parse_args_rejects_unknown_format() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["--format", "xml"])
