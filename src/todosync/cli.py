"""todosync CLI.

Subcommands:
  scan  -> list the annotations found under the source root
  plan  -> reconcile annotations against open issues (no mutation)
  sync  -> create/update/close issues (summary JSON)

Exit codes: 0 success, 1 some keys (or files) failed, 2 fatal error.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .config import CONFIG_DEFAULT, ConfigError, SyncConfig, default_config, load_config
from .core import ScanResult, SyncError, SyncFailures, TodoSync, raise_for_failures
from .reconcile import format_plan, plan_summary
from .ux import print_error, print_operation_status, print_summary_box, print_warning

REPO_HELP = "Override target repository (owner/repo)"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=CONFIG_DEFAULT)
    parser.add_argument("--root", help="Override the source root to scan")


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="todosync", description="Keep GitHub issues in sync with TODO/FIXME comments"
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational logging (env: TODOSYNC_QUIET=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    sc = sub.add_parser("scan", help="List annotations found in the source tree")
    _add_common(sc)
    sc.add_argument("--json", action="store_true", help="Emit annotations as JSON")

    pl = sub.add_parser("plan", help="Show the create/update/close plan without applying it")
    _add_common(pl)
    pl.add_argument("--repo", help=REPO_HELP)
    pl.add_argument("--json", action="store_true", help="Emit the plan as JSON")

    ps = sub.add_parser("sync", help="Sync issues to GitHub (create/update/close)")
    _add_common(ps)
    ps.add_argument("--repo", help=REPO_HELP)
    ps.add_argument("--dry-run", action="store_true")
    ps.add_argument("--summary-json", help="Write the sync summary to this path")
    return p


def prepare_config(args: argparse.Namespace) -> SyncConfig:
    """Load the config for ``args`` and apply command line overrides.

    A missing *default* config file is not an error: the current directory
    is scanned with built-in defaults. An explicitly named file must exist.
    """
    path = Path(args.config)
    if not path.exists() and args.config == CONFIG_DEFAULT:
        cfg = default_config(args.root or ".")
    else:
        cfg = load_config(path)
        if args.root:
            cfg.source_root = Path(args.root).resolve()
    repo_override = getattr(args, "repo", None)
    if repo_override:
        cfg.github_repo = repo_override
    if args.quiet or getattr(args, "json", False):
        cfg.logging_level = "WARNING"
    # stdout carries the JSON document; logs go to stderr
    if getattr(args, "json", False):
        cfg.logging_stream = "stderr"
    return cfg


def _annotation_entry(ann: Any) -> dict[str, Any]:
    return {
        "type": ann.type,
        "content": ann.content,
        "file": ann.file,
        "line": ann.line,
        "key": ann.key,
    }


def _report_extraction_failures(scan: ScanResult) -> None:
    for failure in scan.failures:
        print_warning(f"unreadable: {failure.get('file')} ({failure.get('error')})", stream=sys.stderr)


def _cmd_scan(sync: TodoSync, args: argparse.Namespace) -> int:
    scan = sync.scan()
    if args.json:
        payload = {
            "annotations": [_annotation_entry(a) for a in scan.annotations],
            "files_scanned": scan.files_scanned,
            "extraction_failures": scan.failures,
        }
        print(json.dumps(payload, indent=2))
    else:
        for ann in scan.annotations:
            print(f"{ann.file}:{ann.line} {ann.type}: {ann.content}")
        if not args.quiet:
            print(f"[scan] {len(scan.annotations)} annotation(s) in {scan.files_scanned} file(s)")
    _report_extraction_failures(scan)
    return 1 if scan.failures else 0


def _cmd_plan(sync: TodoSync, args: argparse.Namespace) -> int:
    scan, issues, plan = sync.plan()
    if args.json:
        print(
            json.dumps(
                plan_summary(plan, annotation_count=len(scan.annotations), issue_count=len(issues)),
                indent=2,
            )
        )
    else:
        for line in format_plan(plan):
            print(line)
    _report_extraction_failures(scan)
    return 1 if scan.failures else 0


def _write_summary(path: str | None, summary: dict[str, Any]) -> None:
    if not path:
        return
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(summary, indent=2) + "\n", encoding="utf-8")


def _cmd_sync(sync: TodoSync, args: argparse.Namespace) -> int:
    quiet = args.quiet
    if not quiet:
        print_operation_status("sync", "starting", "mode=" + ("DRY RUN" if args.dry_run else "LIVE"))
    summary = sync.sync(dry_run=args.dry_run)
    _write_summary(args.summary_json, summary)
    totals = summary["totals"]
    if quiet:
        print("[sync] totals", json.dumps(totals))
    else:
        items: list[tuple[str, str | int]] = [
            ("Annotations", totals["annotations"]),
            ("Open issues", totals["issues"]),
            ("Created", totals["created"]),
            ("Updated", totals["updated"]),
            ("Closed", totals["closed"]),
            ("Failed", totals["failed"]),
            ("Unmanaged", totals["unmanaged"]),
        ]
        if totals["retained"]:
            items.append(("Retained", totals["retained"]))
        print_summary_box("Sync Summary" + (" (dry run)" if args.dry_run else ""), items)
        for entry in summary.get("plan", {}).get("actions", []):
            where = f"{entry['file']}:{entry['line']}" if entry["file"] else f"#{entry['issue']}"
            print(f"  would {entry['action']}: {where}")
    try:
        raise_for_failures(summary)
    except SyncFailures as exc:
        for failure in exc.failures:
            target = failure.get("key") or failure.get("file")
            print_error(f"{failure.get('action', 'scan')} {target}: {failure.get('error')}")
        if not quiet:
            print_operation_status("sync", "partial", f"{len(exc.failures)} failure(s)")
        return 1
    if not quiet:
        print_operation_status("sync", "completed")
    return 0


_HANDLERS: dict[str, Callable[[TodoSync, argparse.Namespace], int]] = {
    "scan": _cmd_scan,
    "plan": _cmd_plan,
    "sync": _cmd_sync,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get("TODOSYNC_QUIET") == "1":
        args.quiet = True
    try:
        cfg = prepare_config(args)
    except ConfigError as exc:
        print_error(f"config: {exc}")
        return 2
    handler = _HANDLERS.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 2
    try:
        return handler(TodoSync(cfg), args)
    except SyncError as exc:
        print_error(str(exc))
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
