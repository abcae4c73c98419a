from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

DEFAULT_MAX_FILES = 500
DEFAULT_MAX_SIZE_KB = 1024
DEFAULT_MAX_LINES = 1000


class FileType(StrEnum):
    """Categorization of file types, used as the language tag for comment stripping.

    This is a heuristic classification based on file extensions only.
    """

    TEXT = auto()
    PYTHON = auto()
    TOML = auto()
    JSON = auto()
    MARKDOWN = auto()
    YAML = auto()
    HTML = auto()
    CSS = auto()
    SCSS = auto()
    JAVASCRIPT = auto()
    TYPESCRIPT = auto()
    BASH = auto()
    RUBY = auto()
    RUST = auto()
    GO = auto()
    PHP = auto()
    SQL = auto()
    JAVA = auto()
    KOTLIN = auto()
    SWIFT = auto()
    CSHARP = auto()
    C = auto()
    CPP = auto()
    XML = auto()
    INI = auto()
    OTHER = auto()


EXT2LANG: dict[str, FileType] = {
    ".bash": FileType.BASH,
    ".c": FileType.C,
    ".cc": FileType.CPP,
    ".cfg": FileType.INI,
    ".cjs": FileType.JAVASCRIPT,
    ".conf": FileType.INI,
    ".cpp": FileType.CPP,
    ".cs": FileType.CSHARP,
    ".css": FileType.CSS,
    ".cxx": FileType.CPP,
    ".fish": FileType.BASH,
    ".go": FileType.GO,
    ".h": FileType.C,
    ".hpp": FileType.CPP,
    ".htm": FileType.HTML,
    ".html": FileType.HTML,
    ".ini": FileType.INI,
    ".java": FileType.JAVA,
    ".js": FileType.JAVASCRIPT,
    ".json": FileType.JSON,
    ".jsx": FileType.JAVASCRIPT,
    ".kt": FileType.KOTLIN,
    ".kts": FileType.KOTLIN,
    ".less": FileType.SCSS,
    ".markdown": FileType.MARKDOWN,
    ".md": FileType.MARKDOWN,
    ".mjs": FileType.JAVASCRIPT,
    ".php": FileType.PHP,
    ".py": FileType.PYTHON,
    ".rb": FileType.RUBY,
    ".rs": FileType.RUST,
    ".scss": FileType.SCSS,
    ".sh": FileType.BASH,
    ".sql": FileType.SQL,
    ".svg": FileType.XML,
    ".swift": FileType.SWIFT,
    ".toml": FileType.TOML,
    ".ts": FileType.TYPESCRIPT,
    ".tsx": FileType.TYPESCRIPT,
    ".twig": FileType.HTML,
    ".txt": FileType.TEXT,
    ".xml": FileType.XML,
    ".xsd": FileType.XML,
    ".yaml": FileType.YAML,
    ".yml": FileType.YAML,
    ".zsh": FileType.BASH,
}

_FENCE_LANGUAGE: dict[FileType, str] = {
    FileType.PYTHON: "python",
    FileType.TOML: "toml",
    FileType.JSON: "json",
    FileType.MARKDOWN: "markdown",
    FileType.YAML: "yaml",
    FileType.HTML: "html",
    FileType.CSS: "css",
    FileType.SCSS: "scss",
    FileType.JAVASCRIPT: "javascript",
    FileType.TYPESCRIPT: "typescript",
    FileType.BASH: "bash",
    FileType.RUBY: "ruby",
    FileType.RUST: "rust",
    FileType.GO: "go",
    FileType.PHP: "php",
    FileType.SQL: "sql",
    FileType.JAVA: "java",
    FileType.KOTLIN: "kotlin",
    FileType.SWIFT: "swift",
    FileType.CSHARP: "csharp",
    FileType.C: "c",
    FileType.CPP: "cpp",
    FileType.XML: "xml",
    FileType.INI: "ini",
    FileType.TEXT: "",
    FileType.OTHER: "",
}

# Directory or file names excluded anywhere in the tree. ``vendor`` and
# ``node_modules`` are governed by ``include_vendor_dirs`` instead.
DEFAULT_EXCLUDES = {
    "tests",
    "Tests",
    "coverage",
    ".coverage",
    "build",
    "dist",
    "out",
    ".phpunit.cache",
    "cache",
    "tmp",
    "temp",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".git",
    ".idea",
    ".vscode",
    ".venv",
    ".webpack-cache",
    ".cache",
    ".env",
    ".env.local",
    ".gitignore",
    ".gitkeep",
    "LICENSE",
    "reference.php",
}

DEFAULT_EXCLUDED_SUFFIXES = {".lock", ".mcp", ".md", ".neon"}

DEFAULT_EXCLUDED_GLOBS = {"**/*.log", "**/.DS_Store", "**/*.lock"}

VENDOR_DIRS = frozenset({"vendor", "node_modules"})


def guess_file_type(path: Path) -> FileType:
    """Heuristic guess of file type based on extension.

    Args:
        path (Path): The file path to guess the type for.

    Returns:
        FileType: The guessed file type, or FileType.OTHER if unknown.
    """
    return EXT2LANG.get(path.suffix.lower(), FileType.OTHER)


def guess_language(file_type: FileType) -> str:
    """Get the suggested code fence language for a given file type.

    Args:
        file_type (FileType): The categorized file type.

    Returns:
        str: The suggested language name for code fences, or empty string if none.
    """
    return _FENCE_LANGUAGE.get(file_type, "")


def file_extension(path: Path) -> str:
    """Lower-cased extension without the leading dot, or ``txt`` when the name has none."""
    suffix = path.suffix.lower().lstrip(".")
    return suffix or "txt"


# ------------------------------ Exclusion rules ------------------------------


class DirectoryName(BaseModel):
    """Matches a directory (or file) with this exact name anywhere in the tree."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["directory_name"] = "directory_name"
    name: str = Field(..., min_length=1)


class ExtensionSuffix(BaseModel):
    """Matches any path ending with this suffix (e.g. ``.lock``)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["extension_suffix"] = "extension_suffix"
    suffix: str = Field(..., min_length=1)


class RootOnlyPath(BaseModel):
    """Matches one literal path measured from the root (and everything below it)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["root_only_path"] = "root_only_path"
    path: str = Field(..., min_length=1)

    @field_validator("path")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return value.strip().replace("\\", "/").strip("/")


class GlobPattern(BaseModel):
    """Matches the relative path with ``*``/``?``/``**`` wildcard semantics."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["glob_pattern"] = "glob_pattern"
    pattern: str = Field(..., min_length=1)


ExclusionRule = Annotated[
    DirectoryName | ExtensionSuffix | RootOnlyPath | GlobPattern,
    Field(discriminator="kind"),
]


# ------------------------------ Run configuration ----------------------------


class ScanConfig(BaseModel):
    """Immutable per-run configuration of the scanning pipeline.

    Attributes:
        roots: Scan roots, processed strictly in this order.
        project_root: Directory every ``FileRecord.rel`` is measured from.
        max_files: Global ceiling on accepted files across all roots (0 = unlimited).
        max_file_size_bytes: On-disk size ceiling per file (0 = unlimited).
        max_lines_per_file: Line budget per file after stripping (0 = unlimited).
        strip_comments: Remove comments before truncation.
        include_hidden: Descend into directories starting with ``.``.
        include_vendor_dirs: Descend into ``vendor`` and ``node_modules``.
        extra_exclude_rules: Rules added on top of the built-in defaults.
        allowed_extensions: Optional allow-list of extensions or language tags.
        use_gitignore: Also honor ``<project_root>/.gitignore``.
    """

    model_config = ConfigDict(frozen=True)

    roots: tuple[Path, ...] = Field(..., description="Scan roots, in order")
    project_root: Path = Field(..., description="Root for relative output paths")
    max_files: int = Field(default=DEFAULT_MAX_FILES, ge=0)
    max_file_size_bytes: int = Field(default=DEFAULT_MAX_SIZE_KB * 1024, ge=0)
    max_lines_per_file: int = Field(default=DEFAULT_MAX_LINES, ge=0)
    strip_comments: bool = False
    include_hidden: bool = False
    include_vendor_dirs: bool = False
    extra_exclude_rules: tuple[ExclusionRule, ...] = ()
    allowed_extensions: frozenset[str] | None = None
    use_gitignore: bool = True

    @field_validator("allowed_extensions")
    @classmethod
    def _normalize_extensions(cls, value: frozenset[str] | None) -> frozenset[str] | None:
        if value is None:
            return None
        cleaned = frozenset(e.strip().lstrip(".").lower() for e in value if e.strip())
        return cleaned or None


# ------------------------------ Scan products --------------------------------


class FileRecord(BaseModel):
    """Processed representation of one accepted file.

    Attributes:
        path: Absolute path to the file on disk.
        rel: Path relative to the project root, with POSIX separators.
        content: File content after optional comment stripping and truncation.
        size: Size in bytes of ``content`` encoded as UTF-8 (not the on-disk size).
        line_count: Number of lines in ``content``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the project root")
    content: str = Field(..., description="Processed file content")
    size: int = Field(..., ge=0, description="Processed content size in bytes")
    line_count: int = Field(..., ge=0, description="Processed content line count")

    @computed_field
    @property
    def file_type(self) -> FileType:
        """Categorize the file type based on extension."""
        return guess_file_type(self.path)

    @computed_field
    @property
    def language(self) -> str:
        """Get the suggested code fence language based on the file type."""
        return guess_language(self.file_type)

    @computed_field
    @property
    def extension(self) -> str:
        """Normalized extension used to group files in the snapshot."""
        return file_extension(self.path)


class SkipReason(StrEnum):
    """Why the record builder declined a file."""

    READ_ERROR = auto()
    BINARY = auto()


class Skipped(BaseModel):
    """Outcome of the record builder for a file that produces no record."""

    model_config = ConfigDict(frozen=True)

    path: Path
    reason: SkipReason
    detail: str = ""


class ScanStats(BaseModel):
    """Totals over every root of one run."""

    model_config = ConfigDict(frozen=True)

    files_processed: int = Field(default=0, ge=0)
    total_size: int = Field(default=0, ge=0, description="Sum of FileRecord.size")
    files_skipped: int = Field(default=0, ge=0)
    roots_scanned: int = Field(default=0, ge=0)
