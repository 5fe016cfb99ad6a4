"""todosync - keep GitHub issues in sync with TODO/FIXME source comments.

High-level public API:

from todosync import TodoSync

sync = TodoSync.from_config_path('todosync.config.yaml')
summary = sync.sync(dry_run=True)
print(summary['totals'])

Each annotation maps to exactly one open issue through a key embedded in the
issue body; issues whose annotation disappeared are closed.
"""

from __future__ import annotations

from .config import SyncConfig, load_config
from .content import ContentGenerator, IssueContent, TemplateContentGenerator
from .core import ScanResult, SyncError, SyncFailures, TodoSync, raise_for_failures
from .extractor import extract_annotations
from .keys import decode_key, encode_key, parse_key
from .models import Annotation, ReconcilePlan, TrackerIssue
from .reconcile import reconcile
from .tracker import TrackerConfig, TrackerGateway

# Version constant (keep in sync with pyproject)
__version__ = "0.1.0"

__all__ = [
    "Annotation",
    "ContentGenerator",
    "IssueContent",
    "ReconcilePlan",
    "ScanResult",
    "SyncConfig",
    "SyncError",
    "SyncFailures",
    "TemplateContentGenerator",
    "TodoSync",
    "TrackerConfig",
    "TrackerGateway",
    "TrackerIssue",
    "decode_key",
    "encode_key",
    "extract_annotations",
    "load_config",
    "parse_key",
    "raise_for_failures",
    "reconcile",
    "__version__",
]
