from __future__ import annotations

from pathlib import Path

import pytest

from context_snapshot.config import DirectoryName, ExtensionSuffix, GlobPattern, RootOnlyPath, ScanConfig
from context_snapshot.exclusion import (
    DEFAULT_RULES,
    ExclusionMatcher,
    classify_pattern,
    glob_matches,
    parse_ignore_patterns,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("node_modules/", DirectoryName(name="node_modules")),
        ("*.log", ExtensionSuffix(suffix=".log")),
        ("*.min.js", ExtensionSuffix(suffix=".min.js")),
        ("src/*.py", GlobPattern(pattern="src/*.py")),
        ("a?.txt", GlobPattern(pattern="a?.txt")),
        ("docs/api", RootOnlyPath(path="docs/api")),
        ("docs/api/", RootOnlyPath(path="docs/api")),
        ("./config/local.php", RootOnlyPath(path="config/local.php")),
        ("README.md", DirectoryName(name="README.md")),
    ],
)
def test_classify_pattern(raw: str, expected: object) -> None:
    assert classify_pattern(raw) == expected


@pytest.mark.unit
def test_parse_ignore_patterns_skips_blank_entries() -> None:
    rules = parse_ignore_patterns(["", "  ", "docs/"])

    assert rules == (DirectoryName(name="docs"),)


@pytest.mark.unit
def test_glob_matches_single_star_does_not_cross_directories() -> None:
    assert glob_matches("src/*.py", "src/a.py")
    assert not glob_matches("src/*.py", "src/sub/a.py")


@pytest.mark.unit
def test_glob_matches_double_star_matches_any_depth() -> None:
    assert glob_matches("**/gen/*.ts", "gen/x.ts")
    assert glob_matches("**/gen/*.ts", "a/b/gen/x.ts")
    assert not glob_matches("**/gen/*.ts", "a/b/gen/sub/x.ts")


@pytest.mark.unit
def test_glob_without_slash_matches_basename() -> None:
    assert glob_matches("*.generated.php", "src/Entity/User.generated.php")


@pytest.mark.unit
def test_default_directories_are_pruned() -> None:
    matcher = ExclusionMatcher()

    assert matcher.should_prune_directory("tests")
    assert matcher.should_prune_directory("__pycache__")
    assert not matcher.should_prune_directory("src")


@pytest.mark.unit
def test_hidden_directories_follow_toggle() -> None:
    assert ExclusionMatcher().should_prune_directory(".github")
    assert not ExclusionMatcher(include_hidden=True).should_prune_directory(".github")
    # Explicit default rules still apply when hidden directories are included.
    assert ExclusionMatcher(include_hidden=True).should_prune_directory(".git")


@pytest.mark.unit
def test_vendor_directories_follow_toggle() -> None:
    assert ExclusionMatcher().should_prune_directory("vendor")
    assert ExclusionMatcher().should_prune_directory("node_modules")
    assert not ExclusionMatcher(include_vendor_dirs=True).should_prune_directory("vendor")


@pytest.mark.unit
@pytest.mark.parametrize(
    "rel",
    [
        "composer.lock",
        "var/log/app.log",
        "src/.DS_Store",
        "src/tests/FooTest.php",
        "snapshots/snapshot.mcp",
        "LICENSE",
        "README.md",
        "phpstan.neon",
        "config/reference.php",
    ],
)
def test_default_rules_exclude_files(rel: str) -> None:
    assert ExclusionMatcher().should_exclude_file(rel)


@pytest.mark.unit
def test_default_rules_keep_ordinary_sources() -> None:
    matcher = ExclusionMatcher()

    assert not matcher.should_exclude_file("src/Controller/HomeController.php")
    assert matcher.explain("src/Controller/HomeController.php") is None


@pytest.mark.unit
def test_root_only_path_matches_from_root_only() -> None:
    matcher = ExclusionMatcher([RootOnlyPath(path="config/secret")])

    assert matcher.should_exclude_file("config/secret")
    assert matcher.should_exclude_file("config/secret/keys.yaml")
    assert not matcher.should_exclude_file("app/config/secret/keys.yaml")
    assert not matcher.should_exclude_file("config/secrets.yaml")


@pytest.mark.unit
def test_root_only_path_also_matches_scan_relative_path() -> None:
    matcher = ExclusionMatcher([RootOnlyPath(path="generated")])

    assert matcher.should_exclude_file("modules/blog/generated/a.php", "generated/a.php")


@pytest.mark.unit
def test_explain_names_the_matching_rule() -> None:
    matcher = ExclusionMatcher()

    assert matcher.explain("composer.lock") == "extension_suffix:.lock"
    assert matcher.explain("src/tests/a.php") == "directory_name:tests"


@pytest.mark.unit
def test_defaults_are_always_present() -> None:
    matcher = ExclusionMatcher([GlobPattern(pattern="*.twig")])

    assert set(DEFAULT_RULES) <= set(matcher.rules)
    assert matcher.should_exclude_file("templates/base.twig")


@pytest.mark.unit
def test_adding_rules_never_includes_previously_excluded_paths() -> None:
    paths = [
        "src/a.php",
        "src/b.js",
        "docs/guide.txt",
        "composer.lock",
        "src/tests/a.php",
        "build/app.js",
        "public/app.min.js",
    ]
    base = ExclusionMatcher()
    extended = ExclusionMatcher(parse_ignore_patterns(["*.min.js", "docs/", "src/*.js"]))

    excluded_before = {p for p in paths if base.should_exclude_file(p)}
    excluded_after = {p for p in paths if extended.should_exclude_file(p)}

    assert excluded_before <= excluded_after
    assert excluded_after == excluded_before | {"public/app.min.js", "docs/guide.txt", "src/b.js"}


@pytest.mark.unit
def test_from_config_honors_gitignore(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.generated.php\nreports/\n", encoding="utf-8")
    config = ScanConfig(roots=(tmp_path,), project_root=tmp_path)

    matcher = ExclusionMatcher.from_config(config)

    assert matcher.should_exclude_file("src/User.generated.php")
    assert matcher.should_exclude_file("reports/q1.csv")
    assert matcher.explain("reports/q1.csv") == "gitignore"
    assert not matcher.should_exclude_file("src/User.php")


@pytest.mark.unit
def test_gitignored_directory_is_pruned(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("generated/\n", encoding="utf-8")
    matcher = ExclusionMatcher.from_config(ScanConfig(roots=(tmp_path,), project_root=tmp_path))

    assert matcher.should_prune_directory("generated", "generated")
    assert matcher.should_prune_directory("generated", "modules/blog/generated")
    assert not matcher.should_prune_directory("src", "src")
    assert not matcher.should_prune_directory("generated")


@pytest.mark.unit
def test_from_config_can_disable_gitignore(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.generated.php\n", encoding="utf-8")
    config = ScanConfig(roots=(tmp_path,), project_root=tmp_path, use_gitignore=False)

    matcher = ExclusionMatcher.from_config(config)

    assert not matcher.should_exclude_file("src/User.generated.php")


@pytest.mark.unit
def test_from_config_without_gitignore_file(tmp_path: Path) -> None:
    config = ScanConfig(
        roots=(tmp_path,),
        project_root=tmp_path,
        extra_exclude_rules=(DirectoryName(name="fixtures"),),
        include_hidden=True,
    )

    matcher = ExclusionMatcher.from_config(config)

    assert matcher.should_prune_directory("fixtures")
    assert not matcher.should_prune_directory(".github")
