from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .concurrency import ConcurrencyConfig, create_concurrent_processor
from .config import SyncConfig, load_config
from .content import ContentGenerator, TemplateContentGenerator
from .env_auth import EnvAuthConfig, create_env_auth_manager
from .errors import ErrorInfo, classify_error
from .extractor import ExtractionError, file_identifier, iter_source_files, scan_file
from .logging import configure_logging
from .models import Action, Annotation, ReconcilePlan, TrackerIssue
from .reconcile import plan_summary, reconcile
from .tracker import TrackerConfig, TrackerGateway


class SyncError(RuntimeError):
    """Fatal failure: the run could not reconcile at all."""

    def __init__(self, message: str, *, info: ErrorInfo | None = None):
        super().__init__(message)
        self.info = info


class SyncFailures(RuntimeError):
    """Aggregate of the per-key (and per-file) failures of a finished run."""

    def __init__(self, failures: list[dict[str, Any]]):
        super().__init__(f"{len(failures)} sync failure(s)")
        self.failures = failures


@dataclass
class ScanResult:
    annotations: list[Annotation] = field(default_factory=list)
    files_scanned: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)
    # file / directory identifiers that could not be read this run
    unreadable: set[str] = field(default_factory=set)


def _failure_entry(info: ErrorInfo, **context: Any) -> dict[str, Any]:
    return {**context, "category": info.category, "error": info.message}


def raise_for_failures(summary: dict[str, Any]) -> None:
    failures = list(summary.get("failures") or []) + list(summary.get("extraction_failures") or [])
    if failures:
        raise SyncFailures(failures)


class TodoSync:
    """Keeps tracker issues in step with source annotations.

    One ``sync`` run: walk the source tree, extract annotations, fetch the
    open issues, reconcile by key and dispatch create/update/close. A
    failure on one key is recorded and the run continues; only an
    unreadable source root or a failed initial fetch abort it.
    """

    def __init__(
        self,
        cfg: SyncConfig,
        *,
        gateway: TrackerGateway | None = None,
        generator: ContentGenerator | None = None,
    ):
        self.cfg = cfg
        self._debug = os.environ.get("TODOSYNC_DEBUG") == "1"
        self._mock = os.environ.get("TODOSYNC_MOCK") == "1"
        self._last_error: dict[str, Any] | None = None
        self._logger = configure_logging(
            json_logging=cfg.logging_json_enabled,
            level=cfg.logging_level,
            stream=cfg.logging_stream,
        )
        self._gateway = gateway
        self._generator: ContentGenerator = generator or TemplateContentGenerator(cfg.title_width)
        self._processor = create_concurrent_processor(
            ConcurrencyConfig(
                enabled=cfg.concurrency_enabled,
                max_workers=cfg.concurrency_max_workers,
                batch_size=cfg.concurrency_batch_size,
            )
        )

    @classmethod
    def from_config_path(cls, path: str | Path) -> TodoSync:
        return cls(load_config(path))

    @property
    def last_error(self) -> dict[str, Any] | None:
        return self._last_error

    def _log(self, *parts: Any) -> None:
        if self._debug:
            print("[todosync]", *parts)
        self._logger.debug(" ".join(str(p) for p in parts))

    # --- collaborators --------------------------------------------------------
    def _resolve_token(self) -> str | None:
        if self.cfg.github_token:
            return self.cfg.github_token
        manager = create_env_auth_manager(
            EnvAuthConfig(
                load_dotenv=self.cfg.env_auth_load_dotenv,
                dotenv_path=self.cfg.env_auth_dotenv_path,
                base_dir=self.cfg.config_path.parent if self.cfg.config_path else None,
            )
        )
        token = manager.get_github_token()
        if not token:
            for hint in manager.get_authentication_recommendations():
                self._logger.info(f"Authentication hint: {hint}")
        return token

    def gateway(self) -> TrackerGateway:
        if self._gateway is None:
            tracker_cfg = TrackerConfig(
                repo=self.cfg.github_repo,
                api_url=self.cfg.github_api_url,
                timeout=self.cfg.github_timeout,
                labels=list(self.cfg.github_labels),
                retry_attempts=self.cfg.github_retry_attempts,
                mock=self._mock,
            )
            if not self._mock:
                tracker_cfg.token = self._resolve_token()
            try:
                self._gateway = TrackerGateway(tracker_cfg)
            except ValueError as exc:
                raise SyncError(f"Tracker is not configured: {exc}") from exc
        return self._gateway

    # --- scanning -------------------------------------------------------------
    def scan(self) -> ScanResult:
        root = self.cfg.source_root
        result = ScanResult()

        def _dir_failed(err: ExtractionError) -> None:
            self._record_extraction_failure(result, err, root)

        try:
            files = list(
                iter_source_files(root, self.cfg.extensions, self.cfg.exclude, on_error=_dir_failed)
            )
        except ExtractionError as exc:
            raise SyncError(str(exc), info=classify_error(exc)) from exc

        def _scan(path: Path) -> list[Annotation]:
            return scan_file(path, root, self.cfg.prefixes, key_strategy=self.cfg.key_strategy)

        for outcome in self._processor.process(files, _scan):
            if outcome.error is not None:
                self._record_extraction_failure(result, outcome.error, root, path=outcome.item)
                continue
            result.files_scanned += 1
            result.annotations.extend(outcome.result or [])
        self._log("scan:done", len(result.annotations), "annotations in", result.files_scanned, "files")
        self._logger.log_operation(
            "scan_complete",
            annotation_count=len(result.annotations),
            files_scanned=result.files_scanned,
            extraction_failures=len(result.failures),
        )
        return result

    def _record_extraction_failure(
        self, result: ScanResult, exc: Exception, root: Path, path: Path | None = None
    ) -> None:
        raw_path = path or (Path(exc.path) if isinstance(exc, ExtractionError) and exc.path else None)
        ident = file_identifier(raw_path, root) if raw_path is not None else None
        if ident:
            result.unreadable.add(ident)
        info = classify_error(exc)
        result.failures.append(_failure_entry(info, file=ident))
        self._logger.log_error("extraction_failed", error=info.message, path=ident, category=info.category)

    # --- reconciliation -------------------------------------------------------
    def fetch_existing(self) -> list[TrackerIssue]:
        gateway = self.gateway()
        try:
            issues = gateway.fetch_all()
        except Exception as exc:
            info = classify_error(exc)
            raise SyncError(f"Failed to fetch existing issues: {info.message}", info=info) from exc
        self._log("sync:existing_issues", len(issues))
        self._logger.log_operation("fetch_existing_issues", issue_count=len(issues))
        return issues

    def plan(self) -> tuple[ScanResult, list[TrackerIssue], ReconcilePlan]:
        scan = self.scan()
        issues = self.fetch_existing()
        plan = reconcile(scan.annotations, issues, protected_files=scan.unreadable)
        for dup in plan.duplicates:
            if isinstance(dup, Annotation):
                self._logger.warning(
                    "duplicate annotation key ignored", key=dup.key, file=dup.file, line=dup.line
                )
            else:
                self._logger.warning("duplicate issue key ignored", key=dup.key, issue_number=dup.id)
        return scan, issues, plan

    def sync(self, *, dry_run: bool = False) -> dict[str, Any]:
        try:
            with self._logger.timed_operation("sync", dry_run=dry_run):
                self._log("sync:start", f"dry_run={dry_run}")
                scan, issues, plan = self.plan()
                processed: list[dict[str, Any]] = []
                failures: list[dict[str, Any]] = []
                if dry_run:
                    self._log_intended(plan)
                else:
                    processed, failures = self._dispatch(plan)
                summary = self._build_summary(scan, issues, plan, processed, failures, dry_run)
                self._log("sync:done", summary["totals"])
                self._logger.log_operation(
                    "sync_complete",
                    issues_created=summary["totals"]["created"],
                    issues_updated=summary["totals"]["updated"],
                    issues_closed=summary["totals"]["closed"],
                    failed=summary["totals"]["failed"],
                    dry_run=dry_run,
                )
                return summary
        except Exception as exc:  # broad catch to enrich logging then re-raise
            info = exc.info if isinstance(exc, SyncError) and exc.info else classify_error(exc)
            self._logger.log_error(
                "sync_failed",
                category=info.category,
                transient=info.transient,
                original_type=info.original_type,
                error=info.message,
            )
            self._last_error = info.as_dict()
            raise

    # --- dispatch -------------------------------------------------------------
    def _log_intended(self, plan: ReconcilePlan) -> None:
        for action in plan.actions():
            number = action.issue.id if action.issue else None
            self._logger.log_issue_action(action.kind, action.key, number, dry_run=True)

    def _apply(self, action: Action) -> dict[str, Any]:
        gateway = self.gateway()
        ann, issue = action.annotation, action.issue
        if action.kind == "create" and ann is not None:
            content = self._generator.generate(ann)
            created = gateway.create(content.title, content.description)
            self._logger.log_issue_action("create", action.key, created.id, file=ann.file, line=ann.line)
            return {"key": action.key, "file": ann.file, "line": ann.line, "number": created.id, "title": content.title}
        if action.kind == "update" and ann is not None and issue is not None:
            content = self._generator.generate(ann)
            gateway.update(issue.id, content.title, content.description)
            self._logger.log_issue_action("update", action.key, issue.id, file=ann.file, line=ann.line)
            return {"key": action.key, "file": ann.file, "line": ann.line, "number": issue.id, "title": content.title}
        if action.kind == "close" and issue is not None:
            gateway.close(issue.id)
            self._logger.log_issue_action("close", action.key, issue.id)
            return {"key": action.key, "number": issue.id, "title": issue.title}
        raise ValueError(f"Malformed {action.kind} action for key {action.key}")

    def _dispatch(self, plan: ReconcilePlan) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        processed: list[dict[str, Any]] = []
        failures: list[dict[str, Any]] = []
        for outcome in self._processor.process(plan.actions(), self._apply):
            action = outcome.item
            if outcome.error is None:
                processed.append({"action": action.kind, **(outcome.result or {})})
                continue
            info = classify_error(outcome.error)
            number = action.issue.id if action.issue else None
            failures.append(_failure_entry(info, key=action.key, action=action.kind, issue=number))
            self._logger.log_error(
                f"issue {action.kind} failed",
                error=info.message,
                key=action.key,
                issue_number=number,
                category=info.category,
            )
        return processed, failures

    def _build_summary(
        self,
        scan: ScanResult,
        issues: list[TrackerIssue],
        plan: ReconcilePlan,
        processed: list[dict[str, Any]],
        failures: list[dict[str, Any]],
        dry_run: bool,
    ) -> dict[str, Any]:
        changes: dict[str, list[dict[str, Any]]] = {"created": [], "updated": [], "closed": []}
        bucket = {"create": "created", "update": "updated", "close": "closed"}
        for entry in processed:
            payload = {k: v for k, v in entry.items() if k != "action"}
            changes[bucket[entry["action"]]].append(payload)
        summary: dict[str, Any] = {
            "totals": {
                "files": scan.files_scanned,
                "annotations": len(scan.annotations),
                "issues": len(issues),
                "created": len(changes["created"]),
                "updated": len(changes["updated"]),
                "closed": len(changes["closed"]),
                "failed": len(failures),
                "unmanaged": len(plan.unmanaged),
                "retained": len(plan.retained),
                "duplicates": len(plan.duplicates),
                "extraction_failures": len(scan.failures),
            },
            "changes": changes,
            "failures": failures,
            "extraction_failures": scan.failures,
            "dry_run": dry_run,
        }
        if dry_run:
            summary["plan"] = plan_summary(
                plan, annotation_count=len(scan.annotations), issue_count=len(issues)
            )
        return summary


__all__ = ["TodoSync", "ScanResult", "SyncError", "SyncFailures", "raise_for_failures"]
