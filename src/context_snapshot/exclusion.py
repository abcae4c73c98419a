"""Exclusion rules evaluated while walking a scan root.

Rules come in four kinds (see ``context_snapshot.config``). Any single matching
rule excludes a path; there is no precedence and no negation. The built-in
defaults are always present, callers can only add to them.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

import pathspec

from context_snapshot.config import (
    DEFAULT_EXCLUDED_GLOBS,
    DEFAULT_EXCLUDED_SUFFIXES,
    DEFAULT_EXCLUDES,
    VENDOR_DIRS,
    DirectoryName,
    ExclusionRule,
    ExtensionSuffix,
    GlobPattern,
    RootOnlyPath,
)
from context_snapshot.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from context_snapshot.config import ScanConfig

_WILDCARDS = ("*", "?")

DEFAULT_RULES: tuple[ExclusionRule, ...] = (
    *(DirectoryName(name=n) for n in sorted(DEFAULT_EXCLUDES)),
    *(ExtensionSuffix(suffix=s) for s in sorted(DEFAULT_EXCLUDED_SUFFIXES)),
    *(GlobPattern(pattern=g) for g in sorted(DEFAULT_EXCLUDED_GLOBS)),
)


@lru_cache(maxsize=1024)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a ``*``/``?``/``**`` glob into an anchored regular expression.

    ``*`` and ``?`` never cross a ``/``; ``**/`` matches zero or more leading
    directories and a bare ``**`` matches anything, separators included.

    Args:
        pattern (str): the glob pattern, with POSIX separators

    Returns:
        re.Pattern[str]: a compiled pattern meant for ``fullmatch``
    """
    out: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out))


def glob_matches(pattern: str, relative_path: str) -> bool:
    """Check a relative path against a glob; slash-free patterns also try the basename.

    Args:
        pattern (str): the glob pattern
        relative_path (str): the path to test, with POSIX separators

    Returns:
        bool: True if the pattern matches
    """
    rx = glob_to_regex(pattern)
    if rx.fullmatch(relative_path):
        return True
    if "/" not in pattern:
        return rx.fullmatch(relative_path.rsplit("/", 1)[-1]) is not None
    return False


def classify_pattern(raw: str) -> ExclusionRule:
    """Classify an ad-hoc ignore pattern into one of the four rule kinds.

    - trailing ``/``: directory name (or a root-relative path if it still has a ``/``)
    - leading ``*.`` without ``/``: extension suffix
    - any other wildcard: glob
    - contains ``/``: root-relative path
    - otherwise: bare file or directory name

    Args:
        raw (str): the pattern as typed by the user or read from the options file

    Returns:
        ExclusionRule: the classified rule
    """
    text = raw.strip().replace("\\", "/")
    if text.endswith("/"):
        name = text.rstrip("/")
        if "/" in name.lstrip("/"):
            return RootOnlyPath(path=name)
        return DirectoryName(name=name.lstrip("/"))
    if text.startswith("*.") and "/" not in text and not any(w in text[2:] for w in _WILDCARDS):
        return ExtensionSuffix(suffix=text[1:])
    if any(w in text for w in _WILDCARDS):
        return GlobPattern(pattern=text.removeprefix("./"))
    if "/" in text:
        return RootOnlyPath(path=text.removeprefix("./"))
    return DirectoryName(name=text)


def parse_ignore_patterns(patterns: Sequence[str]) -> tuple[ExclusionRule, ...]:
    """Classify a sequence of ignore patterns, skipping blank entries."""
    return tuple(classify_pattern(p) for p in patterns if p and p.strip())


def load_gitignore(project_root: Path) -> pathspec.PathSpec | None:
    """Load ``<project_root>/.gitignore`` as a gitwildmatch spec.

    Args:
        project_root (Path): the directory holding the ignore file

    Returns:
        pathspec.PathSpec | None: the compiled spec, or None when there is no
            usable ignore file
    """
    ignore_file = project_root / ".gitignore"
    if not ignore_file.is_file():
        return None
    try:
        lines = ignore_file.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("gitignore_unreadable", path=str(ignore_file), error=str(e))
        return None
    spec = pathspec.GitIgnoreSpec.from_lines(lines)
    logger.debug("gitignore_loaded", path=str(ignore_file), patterns=len(spec.patterns))
    return spec


class ExclusionMatcher:
    """Answers "prune this directory" and "skip this file" for one run.

    The rule set is the union of ``DEFAULT_RULES`` and the caller's rules and is
    immutable once built.
    """

    def __init__(
        self,
        rules: Iterable[ExclusionRule] = (),
        *,
        include_hidden: bool = False,
        include_vendor_dirs: bool = False,
        ignore_spec: pathspec.PathSpec | None = None,
    ) -> None:
        self._rules: tuple[ExclusionRule, ...] = (*DEFAULT_RULES, *rules)
        self._include_hidden = include_hidden
        self._include_vendor_dirs = include_vendor_dirs
        self._ignore_spec = ignore_spec

        self._dir_names = frozenset(r.name for r in self._rules if isinstance(r, DirectoryName))
        self._suffixes = tuple(r.suffix for r in self._rules if isinstance(r, ExtensionSuffix))
        self._root_paths = tuple(r.path for r in self._rules if isinstance(r, RootOnlyPath))
        self._globs = tuple(r.pattern.replace("\\", "/") for r in self._rules if isinstance(r, GlobPattern))

    @classmethod
    def from_config(cls, config: ScanConfig) -> ExclusionMatcher:
        """Build the matcher for a run, loading ``.gitignore`` when enabled."""
        spec = load_gitignore(config.project_root) if config.use_gitignore else None
        return cls(
            config.extra_exclude_rules,
            include_hidden=config.include_hidden,
            include_vendor_dirs=config.include_vendor_dirs,
            ignore_spec=spec,
        )

    @property
    def rules(self) -> tuple[ExclusionRule, ...]:
        return self._rules

    def should_prune_directory(self, basename: str, relative_path: str | None = None) -> bool:
        """Decide whether a directory's whole subtree is skipped.

        Args:
            basename (str): the directory name
            relative_path (str | None): the directory path relative to the project root,
                checked against ``.gitignore`` when given

        Returns:
            bool: True if the directory must not be descended into
        """
        if basename in self._dir_names:
            return True
        if basename.startswith(".") and not self._include_hidden:
            return True
        if basename in VENDOR_DIRS and not self._include_vendor_dirs:
            return True
        if self._ignore_spec is not None and relative_path:
            return self._ignore_spec.match_file(relative_path.strip("/") + "/")
        return False

    def should_exclude_file(self, relative_path: str, scan_relative_path: str | None = None) -> bool:
        """Decide whether a file is rejected.

        Args:
            relative_path (str): path relative to the project root
            scan_relative_path (str | None): path relative to the scan root that found
                the file, when it differs

        Returns:
            bool: True if at least one rule matches
        """
        return self.explain(relative_path, scan_relative_path) is not None

    def explain(self, relative_path: str, scan_relative_path: str | None = None) -> str | None:
        """Return a description of the first matching rule, or None if nothing matches."""
        rel = relative_path.replace("\\", "/").strip("/")

        for suffix in self._suffixes:
            if rel.endswith(suffix):
                return f"extension_suffix:{suffix}"

        candidates = {rel}
        if scan_relative_path:
            candidates.add(scan_relative_path.replace("\\", "/").strip("/"))
        for root_path in self._root_paths:
            for cand in candidates:
                if cand == root_path or cand.startswith(root_path + "/"):
                    return f"root_only_path:{root_path}"

        for pattern in self._globs:
            if glob_matches(pattern, rel):
                return f"glob_pattern:{pattern}"

        for part in rel.split("/"):
            if part in self._dir_names:
                return f"directory_name:{part}"

        if self._ignore_spec is not None and self._ignore_spec.match_file(rel):
            return "gitignore"
        return None
