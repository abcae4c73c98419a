"""Tree traversal across the configured scan roots.

``ScanOrchestrator`` owns the single global file budget and walks the roots in
the order given; each root is walked by a ``TreeScanner`` which prunes
directories, filters files and builds records lazily.
"""

from __future__ import annotations

import os
from enum import StrEnum, auto
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from context_snapshot.config import FileRecord, ScanConfig, ScanStats, Skipped, SkipReason, guess_file_type
from context_snapshot.exclusion import ExclusionMatcher
from context_snapshot.file_manipulation import build_file_record, relpath
from context_snapshot.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    WarnFn = Callable[[str], None]


class RootState(StrEnum):
    PENDING = auto()
    SCANNING = auto()
    DONE = auto()


class FileBudget:
    """Global accepted-file counter shared by every root of a run."""

    def __init__(self, max_files: int) -> None:
        self.max_files = max_files
        self.count = 0

    @property
    def exhausted(self) -> bool:
        return self.max_files > 0 and self.count >= self.max_files

    def consume(self) -> None:
        self.count += 1


class ScanResult(BaseModel):
    """Everything the reporting layer needs from one run."""

    model_config = ConfigDict(frozen=True)

    records: tuple[FileRecord, ...] = Field(default=())
    stats: ScanStats = Field(default_factory=ScanStats)
    warnings: tuple[str, ...] = Field(default=())


class TreeScanner:
    """Walks one scan root in pre-order.

    Attributes:
        root: The resolved scan root.
        state: ``PENDING`` until :meth:`scan` starts, ``DONE`` once it returns.
        skipped: Files that reached the record builder but produced no record.
        stopped_by_budget: True if the walk ended because the global budget ran out.
    """

    def __init__(
        self,
        root: Path,
        config: ScanConfig,
        matcher: ExclusionMatcher,
        *,
        project_root: Path | None = None,
    ) -> None:
        self.root = root
        self.config = config
        self.matcher = matcher
        self.project_root = project_root or config.project_root
        self.state = RootState.PENDING
        self.skipped = 0
        self.stopped_by_budget = False

    def is_allowed(self, path: Path) -> bool:
        """Apply the extension allow-list (matches the extension or the language tag)."""
        allowed = self.config.allowed_extensions
        if allowed is None:
            return True
        ext = path.suffix.lower().lstrip(".")
        return ext in allowed or guess_file_type(path).value in allowed

    def scan(self, budget: FileBudget, warn: WarnFn) -> Iterator[FileRecord]:
        """Yield the records of every accepted file below the root.

        Args:
            budget (FileBudget): the run-wide file counter; the walk stops as soon
                as another file would exceed it
            warn (WarnFn): sink for advisory warnings (unreadable files and directories)

        Yields:
            FileRecord: one record per accepted file, in traversal order
        """
        self.state = RootState.SCANNING
        max_size = self.config.max_file_size_bytes

        def on_error(err: OSError) -> None:
            warn(f"Cannot read directory {err.filename}: {err.strerror}")

        try:
            for dirpath, dirnames, filenames in os.walk(self.root, onerror=on_error):
                current = Path(dirpath)
                dirnames[:] = sorted(
                    d
                    for d in dirnames
                    if not self.matcher.should_prune_directory(
                        d,
                        relpath(current / d, self.project_root, fallback=self.root),
                    )
                )
                for name in sorted(filenames):
                    path = current / name
                    if not path.is_file():
                        continue
                    rel = relpath(path, self.project_root, fallback=self.root)
                    reason = self.matcher.explain(rel, relpath(path, self.root))
                    if reason is not None:
                        logger.debug("file_skipped", path=rel, reason="excluded", rule=reason)
                        continue
                    if not self.is_allowed(path):
                        logger.debug("file_skipped", path=rel, reason="extension_not_allowed")
                        continue
                    try:
                        size = path.stat().st_size
                    except OSError as e:
                        warn(f"Error processing file {path}: {e}")
                        continue
                    if max_size > 0 and size > max_size:
                        logger.debug("file_skipped", path=rel, reason="too_large", size=size)
                        continue
                    if budget.exhausted:
                        self.stopped_by_budget = True
                        return

                    outcome = build_file_record(path, rel, self.config)
                    if isinstance(outcome, Skipped):
                        self.skipped += 1
                        if outcome.reason is SkipReason.READ_ERROR:
                            warn(f"Error processing file {path}: {outcome.detail}")
                        continue
                    budget.consume()
                    yield outcome
        finally:
            self.state = RootState.DONE


class ScanOrchestrator:
    """Drives one TreeScanner per root under a single global file budget."""

    def __init__(self, config: ScanConfig, matcher: ExclusionMatcher | None = None) -> None:
        self.config = config
        self.matcher = matcher or ExclusionMatcher.from_config(config)
        self.project_root = config.project_root.resolve()
        self.warnings: list[str] = []
        self._ceiling_reported = False

    def _warn(self, message: str) -> None:
        logger.warning("scan_warning", message=message)
        self.warnings.append(message)

    def _report_ceiling(self, budget: FileBudget) -> None:
        if self._ceiling_reported:
            return
        self._ceiling_reported = True
        self._warn(f"Maximum file limit ({budget.max_files}) reached. Processed {budget.count} files.")

    def run(self) -> ScanResult:
        """Scan every root in order and aggregate the results.

        Roots that do not exist or are not directories are skipped with a warning.
        Overlapping roots are not deduplicated: a file below two roots yields two
        records.

        Returns:
            ScanResult: the records, run statistics and advisory warnings
        """
        budget = FileBudget(self.config.max_files)
        records: list[FileRecord] = []
        skipped = 0
        roots_scanned = 0

        for root in self.config.roots:
            if budget.exhausted:
                self._report_ceiling(budget)
                break
            resolved = root.resolve()
            if not resolved.is_dir():
                self._warn(f"Path does not exist or is not a directory: {root}")
                continue

            scanner = TreeScanner(resolved, self.config, self.matcher, project_root=self.project_root)
            logger.info("scan_root_started", root=str(resolved))
            records.extend(scanner.scan(budget, self._warn))
            skipped += scanner.skipped
            roots_scanned += 1
            logger.info("scan_root_finished", root=str(resolved), files=budget.count)
            if scanner.stopped_by_budget:
                self._report_ceiling(budget)
                break

        stats = ScanStats(
            files_processed=len(records),
            total_size=sum(r.size for r in records),
            files_skipped=skipped,
            roots_scanned=roots_scanned,
        )
        return ScanResult(records=tuple(records), stats=stats, warnings=tuple(self.warnings))


def scan(config: ScanConfig) -> ScanResult:
    """Run a full scan for ``config``."""
    return ScanOrchestrator(config).run()
