from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from context_snapshot.config import DEFAULT_MAX_FILES, DEFAULT_MAX_LINES, DEFAULT_MAX_SIZE_KB, ScanConfig
from context_snapshot.exceptions import ConfigurationError
from context_snapshot.exclusion import parse_ignore_patterns
from context_snapshot.logging import logger

ENV_FILE = find_dotenv(usecwd=True)
CONFIG_ENV_VAR = "SNAPSHOT_CONFIG"
DEFAULT_OPTIONS_FILE = ".snapshot.yaml"
DEFAULT_CHUNK_CHARS = 24_000


class SnapshotOptions(BaseModel):
    """The ``options`` mapping of a YAML options file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_files: int = Field(default=DEFAULT_MAX_FILES, ge=0)
    max_size: int = Field(default=DEFAULT_MAX_SIZE_KB, ge=0, description="Per-file size ceiling in KB.")
    max_lines: int = Field(default=DEFAULT_MAX_LINES, ge=0)
    include_vendors: bool = False
    include_hidden: bool = False
    use_gitignore: bool = True
    strip_comments: bool = False
    exclude: list[str] = Field(default_factory=list, description="Extra ignore patterns.")


def load_options(path: Path) -> SnapshotOptions:
    """Load the ``options`` section of a YAML options file.

    Args:
        path (Path): the YAML file

    Returns:
        SnapshotOptions: the validated options; an empty file yields the defaults

    Raises:
        ConfigurationError: if the file cannot be read, is not valid YAML, or does not
            have the expected shape
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(source=str(path), message=f"Cannot read options file: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(source=str(path), message=f"Invalid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(source=str(path), message="Options file must contain a mapping.")
    options = data.get("options") or {}
    if not isinstance(options, dict):
        raise ConfigurationError(source=str(path), message="'options' must be a mapping.")
    try:
        loaded = SnapshotOptions(**options)
    except ValidationError as e:
        raise ConfigurationError(source=str(path), message=str(e)) from e
    logger.debug("options_loaded", path=str(path), options=loaded.model_dump())
    return loaded


def config_from_environment() -> str:
    """Return ``SNAPSHOT_CONFIG`` from the process environment, else from the ``.env`` file."""
    value = os.environ.get(CONFIG_ENV_VAR, "")
    if not value and ENV_FILE:
        value = dotenv_values(ENV_FILE).get(CONFIG_ENV_VAR) or ""
    return value.strip()


class Settings(BaseModel):
    """Configuration settings for the context_snapshot command line.

    Options left to ``None`` were not given on the command line and fall back to the
    options file, then to the built-in defaults.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: list[str] = Field(default_factory=list, description="Scan roots (default: current directory).")
    project_root: Path | None = Field(default=None, description="Root for relative paths.")
    output: Path | None = Field(default=None, description="Output file (.mcp/.md or .jsonl).")
    format: str = Field(default="", description="Force format.")
    config: Path | None = Field(default=None, description="YAML options file.")
    log_file: str = Field(default="", description="Log file path.")
    verbose: bool = Field(default=False, description="Log per-file decisions.")

    no_gitignore: bool | None = Field(default=None, description="Ignore .gitignore.")
    include_vendors: bool | None = Field(default=None, description="Descend into vendor/node_modules.")
    include_hidden: bool | None = Field(default=None, description="Descend into hidden directories.")
    strip_comments: bool | None = Field(default=None, description="Remove comments.")
    max_files: int | None = Field(default=None, ge=0, description="Global file ceiling.")
    max_size: int | None = Field(default=None, ge=0, description="Per-file size ceiling in KB.")
    max_lines: int | None = Field(default=None, ge=0, description="Per-file line budget.")
    extensions: str = Field(default="", description="Comma list of allowed extensions.")
    ignore: list[str] = Field(default_factory=list, description="Extra ignore patterns.")
    chunk_chars: int = Field(default=DEFAULT_CHUNK_CHARS, gt=0, description="Chunk size for jsonl.")

    def resolved_project_root(self) -> Path:
        return (self.project_root or Path.cwd()).resolve()

    def resolved_roots(self) -> tuple[Path, ...]:
        return tuple(Path(p).resolve() for p in self.paths) or (Path.cwd().resolve(),)

    def options_path(self) -> Path | None:
        """Locate the options file: ``--config``, then ``SNAPSHOT_CONFIG``, then ``.snapshot.yaml``.

        Returns:
            Path | None: the file to load, or None when no options file applies

        Raises:
            ConfigurationError: if an explicitly named options file does not exist
        """
        explicit = self.config or (Path(env) if (env := config_from_environment()) else None)
        if explicit is not None:
            if not explicit.is_file():
                raise ConfigurationError(source=str(explicit), message="Options file not found.")
            return explicit
        candidate = self.resolved_project_root() / DEFAULT_OPTIONS_FILE
        return candidate if candidate.is_file() else None

    def load_options(self) -> SnapshotOptions:
        path = self.options_path()
        return load_options(path) if path is not None else SnapshotOptions()

    def allowed_extensions(self) -> frozenset[str] | None:
        exts = frozenset(e.strip() for e in self.extensions.split(",") if e.strip())
        return exts or None

    def output_format(self, output: Path) -> str:
        """Explicit ``--format``, else ``jsonl`` for a ``.jsonl`` output, else ``md``."""
        fmt = self.format.strip().lower()
        if fmt:
            return fmt
        return "jsonl" if output.suffix.lower() == ".jsonl" else "md"

    def to_scan_config(self, options: SnapshotOptions | None = None) -> ScanConfig:
        """Merge defaults, the options file and the command line into a ScanConfig.

        Args:
            options (SnapshotOptions | None): already loaded options; loaded from the
                resolved options file when omitted

        Returns:
            ScanConfig: the immutable run configuration

        Raises:
            ConfigurationError: if the options file is unusable or a value is invalid
        """
        opts = options if options is not None else self.load_options()

        def pick(cli_value: Any, file_value: Any) -> Any:
            return file_value if cli_value is None else cli_value

        use_gitignore = opts.use_gitignore if self.no_gitignore is None else not self.no_gitignore
        try:
            return ScanConfig(
                roots=self.resolved_roots(),
                project_root=self.resolved_project_root(),
                max_files=pick(self.max_files, opts.max_files),
                max_file_size_bytes=pick(self.max_size, opts.max_size) * 1024,
                max_lines_per_file=pick(self.max_lines, opts.max_lines),
                strip_comments=pick(self.strip_comments, opts.strip_comments),
                include_hidden=pick(self.include_hidden, opts.include_hidden),
                include_vendor_dirs=pick(self.include_vendors, opts.include_vendors),
                extra_exclude_rules=parse_ignore_patterns([*opts.exclude, *self.ignore]),
                allowed_extensions=self.allowed_extensions(),
                use_gitignore=use_gitignore,
            )
        except ValidationError as e:
            raise ConfigurationError(source="command line", message=str(e)) from e
