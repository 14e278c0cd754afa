"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/executor.py
Applies (or, in simulate mode, only reports) the deletion candidate list.

ORDERING
--------
For every real deletion the audit entry is appended and fsynced first, then the file
is removed, then the checkpoint advances. A missing file can therefore always be
explained by the audit log. The checkpoint is written as soon as the stage starts.
If a run dies between logging and removal, the resumed run finds that checkpoint,
sees its own entry as the last line of the log and removes the file without logging
it a second time. A fresh run always logs.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from fuzzydedup.core.errors import OperationCancelled
from fuzzydedup.core.models import DeletionCandidate, DeletionLogEntry, DeletionSummary
from fuzzydedup.core.progress import ProgressTracker
from fuzzydedup.core.store import append_text
from fuzzydedup.services.file_service import FileService

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
AUDIT_TAIL_BYTES = 64 * 1024


class DeletionExecutor:
    """
    Attributes:
        audit_log: Append-only log of real deletions
        allowed_root: Candidate root; paths outside it are refused
        use_trash: Move files to the system trash instead of unlinking them
    """

    def __init__(self,
                 audit_log: str,
                 allowed_root: Optional[str] = None,
                 use_trash: bool = False,
                 clock: Callable[[], datetime] = datetime.now):
        self.audit_log = Path(audit_log)
        self.allowed_root = os.path.realpath(allowed_root) if allowed_root else None
        self.use_trash = use_trash
        self.clock = clock

    def apply(self,
              candidates: Sequence[DeletionCandidate],
              simulate: bool,
              tracker: Optional[ProgressTracker] = None,
              stopped_flag: Optional[Callable[[], bool]] = None,
              progress_callback: Optional[Callable[[str, int, object], None]] = None) -> DeletionSummary:
        """
        Process candidates in list order.
        Simulate mode never writes the audit log, the filesystem or the checkpoint.
        """
        summary = DeletionSummary()
        total = len(candidates)
        durable = tracker is not None and not simulate
        resuming = durable and tracker.is_started()
        start = tracker.load() if durable else 0
        if start > total:
            start = total
        if durable and not resuming:
            tracker.advance(0)

        # Only an interrupted run of this stage can own the last audit line.
        last_logged = self.last_logged_path() if resuming else None
        first_unit = True

        for index in range(start, total):
            candidate = candidates[index]
            if simulate:
                summary.planned.append(candidate)
                logger.info(f"[DRY-RUN] Would delete: {candidate.path} matched: {candidate.reason}")
            else:
                self._delete_one(candidate, summary, skip_audit=(first_unit and candidate.path == last_logged))
                if tracker:
                    tracker.advance(index + 1)
            first_unit = False

            if progress_callback:
                progress_callback("Deleting", index + 1, total)
            if stopped_flag and stopped_flag() and index + 1 < total:
                raise OperationCancelled(f"Deletion interrupted after {index + 1} of {total} candidates",
                                         stage="Deleting")

        return summary

    def _delete_one(self, candidate: DeletionCandidate, summary: DeletionSummary, skip_audit: bool) -> None:
        path = candidate.path

        if not self._is_allowed(path):
            logger.warning(f"Refusing to delete file outside the candidate directory: {path}")
            summary.refused.append(path)
            return

        if not FileService.exists(path):
            logger.info(f"Already gone, nothing to delete: {path}")
            summary.missing.append(path)
            return

        if skip_audit:
            logger.info(f"Audit entry already recorded before interruption: {path}")
        else:
            self._append_entry(path, candidate.reason)

        try:
            removed = FileService.remove(path, use_trash=self.use_trash)
        except RuntimeError as e:
            logger.error(f"Failed to delete {path}: {e}")
            self._append_entry(path, f"FAILED ({e}) {candidate.reason}")
            summary.failed.append((path, str(e)))
            return

        if removed:
            logger.info(f"Deleted: {path}")
            summary.deleted.append(path)
        else:
            summary.missing.append(path)

    def _append_entry(self, path: str, reason: str) -> None:
        entry = DeletionLogEntry(timestamp=self.clock().strftime(TIMESTAMP_FORMAT), path=path, reason=reason)
        self.audit_log.parent.mkdir(parents=True, exist_ok=True)
        append_text(self.audit_log, entry.to_line() + "\n")

    def _is_allowed(self, path: str) -> bool:
        if self.allowed_root is None:
            return True
        normalized = os.path.realpath(path)
        return normalized.startswith(self.allowed_root.rstrip(os.sep) + os.sep)

    def last_logged_path(self) -> Optional[str]:
        """Path of the last audit entry, read from the tail of the log."""
        try:
            with open(self.audit_log, "rb") as f:
                f.seek(0, os.SEEK_END)
                size = f.tell()
                f.seek(max(0, size - AUDIT_TAIL_BYTES))
                tail = f.read().decode("utf-8", errors="replace")
        except FileNotFoundError:
            return None

        lines: List[str] = [line for line in tail.splitlines() if line.strip()]
        if not lines:
            return None
        entry = DeletionLogEntry.from_line(lines[-1])
        return entry.path if entry else None
