from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Protocol

from .keys import embed_key
from .models import Annotation

DEFAULT_TITLE_WIDTH = 80


@dataclass(frozen=True)
class IssueContent:
    title: str
    description: str


class ContentGenerator(Protocol):  # narrow contract used by the runner
    def generate(self, annotation: Annotation) -> IssueContent: ...  # pragma: no cover


def _fence_for(text: str) -> str:
    # Context may itself contain ``` (markdown sources); use a longer fence.
    fence = "```"
    while fence in text:
        fence += "`"
    return fence


def _language_hint(file: str) -> str:
    ext = posixpath.splitext(file)[1].lstrip(".").lower()
    return ext if ext.isalnum() else ""


class TemplateContentGenerator:
    """Static markdown template for annotation issues.

    The key marker block is always the last thing in the description so
    that edits to the generated text above it never hide the key.
    """

    def __init__(self, title_width: int = DEFAULT_TITLE_WIDTH):
        self.title_width = max(20, int(title_width))

    def title(self, annotation: Annotation) -> str:
        content = " ".join(annotation.content.split())
        if not content:
            name = posixpath.basename(annotation.file)
            return f"{annotation.type} in {name} at line {annotation.line}"
        title = f"{annotation.type}: {content}"
        if len(title) > self.title_width:
            title = title[: self.title_width - 3].rstrip() + "..."
        return title

    def description(self, annotation: Annotation) -> str:
        context = annotation.context_text
        fence = _fence_for(context)
        quoted = annotation.content or "(no text)"
        parts = [
            f"Found a `{annotation.type}` comment in `{annotation.file}` at line {annotation.line}:",
            "",
            f"> {quoted}",
            "",
            "Context:",
            "",
            f"{fence}{_language_hint(annotation.file)}",
            context,
            fence,
            "",
            "This issue was generated automatically from a source code comment "
            "and will be closed once the comment is removed.",
            "",
            embed_key(annotation.key),
            "",
        ]
        return "\n".join(parts)

    def generate(self, annotation: Annotation) -> IssueContent:
        return IssueContent(title=self.title(annotation), description=self.description(annotation))


__all__ = [
    "DEFAULT_TITLE_WIDTH",
    "IssueContent",
    "ContentGenerator",
    "TemplateContentGenerator",
]
