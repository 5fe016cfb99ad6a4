"""Terminal output helpers for the CLI (ANSI colors, summary boxes)."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


def _supports_color(stream: TextIO | None = None) -> bool:
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    if not _supports_color(stream):
        return text
    return f"{Colors.BOLD if bold else ''}{color}{text}{Colors.RESET}"


def print_error(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stderr
    print(colorize("✗", Colors.RED, bold=True, stream=stream) + " " + message, file=stream)


def print_warning(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize("⚠", Colors.YELLOW, bold=True, stream=stream) + " " + message, file=stream)


def print_summary_box(
    title: str, items: Sequence[tuple[str, str | int]], stream: TextIO | None = None
) -> None:
    """Print ``items`` as an aligned key/value block under ``title``."""
    stream = stream or sys.stdout
    width = max((len(k) for k, _ in items), default=0)
    print(colorize(f"\n{title}", Colors.CYAN, bold=True, stream=stream), file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)
    for key, value in items:
        shown = str(value)
        if isinstance(value, int) and value > 0:
            shown = colorize(shown, Colors.GREEN, bold=True, stream=stream)
        print(f"  {key.ljust(width)}  {shown}", file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)


def print_operation_status(
    operation: str, status: str, details: str = "", stream: TextIO | None = None
) -> None:
    stream = stream or sys.stdout
    lowered = status.lower()
    if lowered in ("success", "ok", "completed"):
        icon = colorize("✓", Colors.GREEN, bold=True, stream=stream)
    elif lowered in ("failed", "error", "partial"):
        icon = colorize("✗", Colors.RED, bold=True, stream=stream)
    else:
        icon = colorize("•", Colors.BLUE, stream=stream)
    message = f"{icon} {colorize(operation, Colors.BOLD, stream=stream)}: {status}"
    if details:
        message += " " + colorize(f"({details})", Colors.DIM, stream=stream)
    print(message, file=stream)


__all__ = [
    "Colors",
    "colorize",
    "print_error",
    "print_warning",
    "print_summary_box",
    "print_operation_status",
]
