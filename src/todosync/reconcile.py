"""Reconciliation of current annotations against existing tracker issues.

Both sides are indexed by key and compared as sets:

* ``matched``  – key on both sides -> ``update`` (always; there is no
  content-equality check, a refresh is cheaper to reason about than a diff)
* ``create``   – key only produced by an annotation
* ``close``    – key only carried by an issue

Issues with an empty key (no marker in their body) or a key that does not
decode to a file reference are never matched and never closed; they are
reported as ``unmanaged``. When several annotations
(or issues) share a key the first one wins and the rest are reported as
``duplicates``.

``protected_files`` holds files (or directories) that could not be read in
this run. An issue whose key points into one of them is kept open instead of
being closed, since its annotation may well still exist.

Summary structure (stable for JSON tooling):

```
{
    "summary": {"annotation_count": int, "issue_count": int,
                "create": int, "update": int, "close": int,
                "unmanaged": int, "duplicates": int, "retained": int},
    "actions": [{"action": str, "key": str, "file": str|None,
                 "line": int|None, "issue": int|None, "title": str|None}],
    "in_sync": bool
}
```
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .keys import key_file
from .models import Action, Annotation, ReconcilePlan, TrackerIssue


def _index_annotations(
    annotations: Iterable[Annotation], duplicates: list[Annotation | TrackerIssue]
) -> dict[str, Annotation]:
    by_key: dict[str, Annotation] = {}
    for ann in annotations:
        if ann.key in by_key:
            duplicates.append(ann)
            continue
        by_key[ann.key] = ann
    return by_key


def _index_issues(
    issues: Iterable[TrackerIssue],
    unmanaged: list[TrackerIssue],
    duplicates: list[Annotation | TrackerIssue],
) -> dict[str, TrackerIssue]:
    by_key: dict[str, TrackerIssue] = {}
    for issue in issues:
        if not issue.key or key_file(issue.key) is None:
            unmanaged.append(issue)
            continue
        if issue.key in by_key:
            duplicates.append(issue)
            continue
        by_key[issue.key] = issue
    return by_key


def _is_protected(key: str, protected: set[str]) -> bool:
    if not protected:
        return False
    file = key_file(key)
    if file is None:
        return False
    return any(file == p or file.startswith(p.rstrip("/") + "/") for p in protected)


def reconcile(
    annotations: Iterable[Annotation],
    issues: Iterable[TrackerIssue],
    *,
    protected_files: Iterable[str] | None = None,
) -> ReconcilePlan:
    """Compute the create/update/close plan for one run.

    Pure function of its inputs; nothing is sent to the tracker here.
    """
    plan = ReconcilePlan()
    ann_by_key = _index_annotations(annotations, plan.duplicates)
    issue_by_key = _index_issues(issues, plan.unmanaged, plan.duplicates)
    protected = set(protected_files or ())

    for key, ann in ann_by_key.items():
        issue = issue_by_key.get(key)
        if issue is None:
            plan.creates.append(Action("create", key, annotation=ann))
        else:
            plan.updates.append(Action("update", key, annotation=ann, issue=issue))

    for key, issue in issue_by_key.items():
        if key in ann_by_key:
            continue
        if _is_protected(key, protected):
            plan.retained.append(issue)
            continue
        plan.closes.append(Action("close", key, issue=issue))
    return plan


def _action_entry(action: Action) -> dict[str, Any]:
    ann = action.annotation
    issue = action.issue
    return {
        "action": action.kind,
        "key": action.key,
        "file": ann.file if ann else None,
        "line": ann.line if ann else None,
        "issue": issue.id if issue else None,
        "title": issue.title if issue else None,
    }


def plan_summary(
    plan: ReconcilePlan, *, annotation_count: int | None = None, issue_count: int | None = None
) -> dict[str, Any]:
    matched = len(plan.updates)
    if annotation_count is None:
        annotation_count = len(plan.creates) + matched
    if issue_count is None:
        issue_count = matched + len(plan.closes) + len(plan.retained) + len(plan.unmanaged)
    return {
        "summary": {
            "annotation_count": annotation_count,
            "issue_count": issue_count,
            "create": len(plan.creates),
            "update": matched,
            "close": len(plan.closes),
            "unmanaged": len(plan.unmanaged),
            "duplicates": len(plan.duplicates),
            "retained": len(plan.retained),
        },
        "actions": [_action_entry(a) for a in plan.actions()],
        "in_sync": not plan.creates and not plan.closes,
    }


def format_plan(plan: ReconcilePlan) -> list[str]:  # return list of human lines
    lines: list[str] = [
        f"[plan] create={len(plan.creates)} update={len(plan.updates)} "
        f"close={len(plan.closes)} unmanaged={len(plan.unmanaged)}"
    ]
    for action in plan.creates:
        ann = action.annotation
        if ann is not None:
            lines.append(f"  create: {ann.file}:{ann.line} {ann.type}: {ann.content}")
    for action in plan.updates:
        ann, issue = action.annotation, action.issue
        if ann is not None and issue is not None:
            lines.append(f"  update: #{issue.id} <- {ann.file}:{ann.line}")
    for action in plan.closes:
        issue = action.issue
        if issue is not None:
            lines.append(f"  close: #{issue.id} :: {issue.title}")
    for issue in plan.retained:
        lines.append(f"  retained (unreadable source): #{issue.id} :: {issue.title}")
    return lines


__all__ = ["reconcile", "plan_summary", "format_plan"]
