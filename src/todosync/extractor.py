"""Annotation extraction.

``extract_annotations`` is a pure function over one file's lines: the
pattern is compiled per call and every line gets a fresh ``finditer`` so no
scan position leaks between lines, files or threads.

Matching rules:

* an occurrence is ``<prefix>:`` followed by arbitrary text on the same line
* one line can yield several annotations; each one's content stops where the
  next recognized ``<prefix>:`` begins
* results are ordered top-to-bottom, then left-to-right
* context is the inclusive ``[index-5, index+5]`` window clipped to the file
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterable, Iterator, Sequence
from pathlib import Path

from .keys import derive_key
from .models import Annotation

CONTEXT_RADIUS = 5

DEFAULT_PREFIXES = ("TODO", "FIXME", "BUG", "NOTE")
DEFAULT_EXCLUDE = (".git", ".hg", ".svn", "node_modules", ".venv", "venv", "__pycache__", "dist", "build")


class ExtractionError(RuntimeError):
    """Raised when a file or directory cannot be read."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(message)
        self.path = path


def normalize_prefixes(prefixes: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for raw in prefixes:
        prefix = str(raw).strip().rstrip(":").strip()
        if prefix and prefix not in seen:
            seen.add(prefix)
            out.append(prefix)
    return out


def build_pattern(prefixes: Iterable[str]) -> re.Pattern[str]:
    names = normalize_prefixes(prefixes)
    if not names:
        raise ValueError("At least one annotation prefix is required")
    # Longest first so TODOS: is not read as TODO followed by "S:".
    alternation = "|".join(re.escape(p) for p in sorted(names, key=len, reverse=True))
    return re.compile(rf"({alternation}):\s*(.*?)\s*(?=(?:{alternation}):|$)")


def context_window(lines: Sequence[str], index: int, radius: int = CONTEXT_RADIUS) -> tuple[str, ...]:
    start = max(index - radius, 0)
    end = min(index + radius, len(lines) - 1)
    return tuple(lines[start : end + 1])


def extract_annotations(
    lines: Sequence[str],
    file: str,
    prefixes: Iterable[str],
    *,
    key_strategy: str = "position",
) -> list[Annotation]:
    pattern = build_pattern(prefixes)
    found: list[Annotation] = []
    for index, line in enumerate(lines):
        for match in pattern.finditer(line):
            type_, content = match.group(1), match.group(2)
            found.append(
                Annotation(
                    type=type_,
                    content=content,
                    file=file,
                    line=index + 1,
                    context=context_window(lines, index),
                    key=derive_key(
                        key_strategy, type_=type_, content=content, file=file, line=index + 1
                    ),
                )
            )
    return found


def _matches_extension(path: Path, extensions: Sequence[str]) -> bool:
    if not extensions:
        return True
    name = path.name.lower()
    return any(name.endswith(ext.lower()) for ext in extensions)


def iter_source_files(
    root: Path,
    extensions: Sequence[str] = (),
    exclude: Sequence[str] = DEFAULT_EXCLUDE,
    *,
    on_error: Callable[[ExtractionError], None] | None = None,
) -> Iterator[Path]:
    """Yield files under ``root`` in a stable (sorted) order.

    An unreadable root is always fatal. Unreadable subdirectories are passed
    to ``on_error`` and skipped; without a callback they raise.
    """
    if not root.is_dir():
        raise ExtractionError(f"Source root is not a readable directory: {root}", path=str(root))
    excluded = set(exclude)

    def _on_error(exc: OSError) -> None:
        err = ExtractionError(f"Cannot list directory: {exc.strerror or exc}", path=exc.filename)
        if on_error is None or Path(exc.filename or "") == root:
            raise err from exc
        on_error(err)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if _matches_extension(path, extensions):
                yield path


def file_identifier(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def read_lines(path: Path) -> list[str]:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ExtractionError(f"Cannot read {path}: {exc.strerror or exc}", path=str(path)) from exc
    # Line numbers count \n only, as editors and GitHub do.
    lines = [line.rstrip("\r") for line in text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def scan_file(
    path: Path,
    root: Path,
    prefixes: Iterable[str],
    *,
    key_strategy: str = "position",
) -> list[Annotation]:
    return extract_annotations(
        read_lines(path),
        file_identifier(path, root),
        prefixes,
        key_strategy=key_strategy,
    )


__all__ = [
    "CONTEXT_RADIUS",
    "DEFAULT_PREFIXES",
    "DEFAULT_EXCLUDE",
    "ExtractionError",
    "normalize_prefixes",
    "build_pattern",
    "context_window",
    "extract_annotations",
    "iter_source_files",
    "file_identifier",
    "read_lines",
    "scan_file",
]
