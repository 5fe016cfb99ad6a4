from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Annotation:
    """One occurrence of a recognized comment prefix in a source file.

    Annotations are recomputed on every run from the current file content;
    nothing about them is persisted except the ``key`` embedded in the
    issue body created for them.
    """

    type: str
    content: str
    file: str
    line: int  # 1-based
    context: tuple[str, ...]
    key: str

    @property
    def context_text(self) -> str:
        return "\n".join(self.context)


@dataclass
class TrackerIssue:
    id: int
    title: str
    body: str
    key: str = ""  # empty when the body carries no key marker
    state: str = "open"
    url: str | None = None


@dataclass
class Action:
    kind: str  # create | update | close
    key: str
    annotation: Annotation | None = None
    issue: TrackerIssue | None = None


@dataclass
class ReconcilePlan:
    creates: list[Action] = field(default_factory=list)
    updates: list[Action] = field(default_factory=list)
    closes: list[Action] = field(default_factory=list)
    unmanaged: list[TrackerIssue] = field(default_factory=list)
    # issues left open because their source file could not be read this run
    retained: list[TrackerIssue] = field(default_factory=list)
    duplicates: list[Annotation | TrackerIssue] = field(default_factory=list)

    def actions(self) -> list[Action]:
        return [*self.creates, *self.updates, *self.closes]


__all__ = ["Annotation", "TrackerIssue", "Action", "ReconcilePlan"]
