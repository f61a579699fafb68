"""Enumerate candidate files beneath a scan root."""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from .errors import FileAccessError

logger = logging.getLogger(__name__)

BINARY_SNIFF_BYTES = 8192
DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

DEFAULT_SKIP_DIRS = (
    ".git",
    ".hg",
    ".svn",
    ".bzr",
    "node_modules",
    "bower_components",
    "vendor",
    ".venv",
    "venv",
    "__pycache__",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".pnpm",
    ".next",
    ".turbo",
    "coverage",
    "__snapshots__",
)

DEFAULT_EXCLUDE_PATHS = (
    "**/package-lock.json",
    "**/pnpm-lock.yaml",
    "**/yarn.lock",
    "**/poetry.lock",
    "**/*.min.js",
    "**/*.map",
    "**/*.bundle.js",
)

DEFAULT_INCLUDE_EXTENSIONS = (
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".json", ".env",
    ".yml", ".yaml", ".toml", ".md", ".txt", ".sh", ".bash", ".zsh",
    ".ps1", ".conf", ".config", ".cfg", ".ini", ".properties", ".xml",
    ".html", ".py", ".rb", ".go", ".rs", ".java", ".kt", ".cs", ".php",
    ".swift", ".sql", ".graphql", ".gql", ".tf", ".tfvars", ".pem",
    ".key", ".ipynb",
    "Dockerfile", ".npmrc", ".pypirc", ".netrc",
)

SkipCallback = Callable[[str, str, str], None]


@dataclass
class FileRef:
    """A file selected for scanning.

    The file is loaded on first use by ``is_binary`` or ``read``, inside the
    worker that scans it, and read from disk at most once per scan. Files
    with a NUL byte in their first 8 KiB are binary and read as empty.
    """

    path: Path
    relative_path: str
    size: int
    _content: Optional[str] = field(default=None, init=False, repr=False, compare=False)
    _binary: Optional[bool] = field(default=None, init=False, repr=False, compare=False)

    def is_binary(self) -> bool:
        if self._binary is None:
            self._load()
        return bool(self._binary)

    def read(self) -> str:
        if self._content is None:
            self._load()
        return self._content or ""

    def _load(self) -> None:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as exc:
            raise FileAccessError(self.relative_path, "not-found", str(exc)) from exc
        except PermissionError as exc:
            raise FileAccessError(self.relative_path, "permission-denied", str(exc)) from exc
        except OSError as exc:
            raise FileAccessError(self.relative_path, "read-error", str(exc)) from exc
        self._binary = b"\x00" in data[:BINARY_SNIFF_BYTES]
        self._content = "" if self._binary else data.decode("utf-8", errors="replace")


def path_matches(relative_path: str, pattern: str) -> bool:
    """Glob match against a POSIX relative path.

    ``*`` crosses directory separators (fnmatch semantics), a leading
    ``**/`` also matches at the root, and a pattern without wildcards
    matches the path itself or anything beneath it.
    """

    pattern = pattern.strip().replace("\\", "/")
    if pattern.startswith("./"):
        pattern = pattern[2:]
    if not pattern:
        return False
    if fnmatch.fnmatchcase(relative_path, pattern):
        return True
    if pattern.startswith("**/") and fnmatch.fnmatchcase(relative_path, pattern[3:]):
        return True
    if not any(char in pattern for char in "*?["):
        prefix = pattern.rstrip("/") + "/"
        return relative_path.startswith(prefix)
    return False


def walk(
    root: str | Path,
    include_exts: Iterable[str] = DEFAULT_INCLUDE_EXTENSIONS,
    exclude_paths: Iterable[str] = (),
    *,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
    on_skip: Optional[SkipCallback] = None,
) -> Iterator[FileRef]:
    """Yield scan candidates under ``root`` in sorted order.

    ``include_exts`` holds suffixes (``.py``) or exact file names
    (``Dockerfile``); an empty collection selects every file. Files that
    cannot be examined, or exceed ``max_file_size_bytes``, are reported to
    ``on_skip(relative_path, reason, detail)``. Symlinks are never followed.
    Content checks (binary sniff, decoding) are left to ``FileRef``.
    """

    root_path = Path(root)
    includes = {ext.lower() for ext in include_exts}
    excludes = tuple(exclude_paths)
    skipped_dirs = set(skip_dirs)

    def report(relative: str, reason: str, detail: str = "") -> None:
        logger.debug("Skipping %s: %s %s", relative, reason, detail)
        if on_skip is not None:
            on_skip(relative, reason, detail)

    def on_walk_error(exc: OSError) -> None:
        relative = _relative(root_path, Path(exc.filename)) if exc.filename else "."
        report(relative, "unreadable-directory", exc.strerror or str(exc))

    for dirpath, dirnames, filenames in os.walk(root_path, onerror=on_walk_error, followlinks=False):
        current = Path(dirpath)
        kept: List[str] = []
        for name in sorted(dirnames):
            if name in skipped_dirs:
                continue
            child = current / name
            relative = _relative(root_path, child)
            if child.is_symlink() or _excluded(relative, excludes):
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            path = current / name
            relative = _relative(root_path, path)
            if _excluded(relative, excludes) or not _included(name, includes):
                continue
            try:
                info = path.lstat()
            except OSError as exc:
                report(relative, "stat-error", exc.strerror or str(exc))
                continue
            if path.is_symlink():
                continue
            if info.st_size > max_file_size_bytes:
                report(relative, "oversize", f"{info.st_size} bytes > {max_file_size_bytes}")
                continue
            yield FileRef(path=path, relative_path=relative, size=info.st_size)


def _relative(root: Path, path: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _excluded(relative: str, patterns: Iterable[str]) -> bool:
    return any(path_matches(relative, pattern) for pattern in patterns)


def _included(name: str, includes: set) -> bool:
    if not includes:
        return True
    lowered = name.lower()
    if lowered in includes or (".env" in includes and lowered.startswith(".env")):
        return True
    suffix = os.path.splitext(lowered)[1]
    return bool(suffix) and suffix in includes

