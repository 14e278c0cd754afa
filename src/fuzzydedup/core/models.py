"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/models.py
Data models for the fuzzy-hash deduplication pipeline: file handles, hash indexes,
match records, deletion candidates and the run configuration.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Union


# =============================
# Enums
# =============================

class RunMode(Enum):
    """
    Global run mode, fixed for the whole run.
    SIMULATE never touches the filesystem or the audit log.
    """
    SIMULATE = "simulate"
    APPLY = "apply"

    @property
    def display_name(self) -> str:
        """Human-readable name for console output."""
        mapping = {
            RunMode.SIMULATE: "Simulate (dry run)",
            RunMode.APPLY: "Apply (files will be deleted)",
        }
        return mapping.get(self, self.value)

    def __repr__(self) -> str:
        return self.value


class MatchPolicy(Enum):
    """
    Which match wins when a candidate file matches several reference files above threshold.
    """
    FIRST = "first"
    BEST = "best"

    @property
    def description(self) -> str:
        mapping = {
            MatchPolicy.FIRST: "First qualifying match in report order wins",
            MatchPolicy.BEST: "Highest scoring match wins (ties keep the earlier one)",
        }
        return mapping.get(self, self.value)

    def __repr__(self) -> str:
        return self.value


class PipelineState(str, Enum):
    IDLE = "Idle"
    INDEXING_REFERENCE = "Indexing reference"
    INDEXING_CANDIDATES = "Indexing candidates"
    COMPARING = "Comparing"
    FILTERING = "Filtering"
    DELETING = "Deleting"
    DONE = "Done"
    ABORTED = "Aborted"
    CANCELLED = "Cancelled"

    @classmethod
    def get_stages(cls):
        return [cls.INDEXING_REFERENCE, cls.INDEXING_CANDIDATES, cls.COMPARING,
                cls.FILTERING, cls.DELETING]

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.ABORTED, PipelineState.CANCELLED)


# ======================
#  Core Data Models
# ======================

@dataclass(frozen=True)
class FileHandle:
    """
    A regular file discovered under a tracked directory.
    The pipeline never mutates file content, it only deletes whole files.
    """
    path: str
    size: int = 0
    fingerprint: Optional[str] = None

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    def __repr__(self):
        return f"<FileHandle path={self.path}>"


@dataclass
class HashIndex:
    """
    Fingerprints of one directory tree, in enumeration order.
    `source` is the signature file the index was loaded from (if any).
    """
    directory: str
    entries: List[FileHandle] = field(default_factory=list)
    source: Optional[str] = None

    def paths(self) -> Set[str]:
        return {entry.path for entry in self.entries}

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self):
        return f"<HashIndex directory={self.directory}, entries={len(self.entries)}>"


@dataclass(frozen=True)
class MatchRecord:
    """One parsed line of oracle output."""
    score: int
    reference_path: str
    candidate_path: str

    def __post_init__(self):
        if not self.reference_path or not self.candidate_path:
            raise ValueError("Match record requires both reference and candidate paths")
        if not 0 <= self.score <= 100:
            raise ValueError(f"Similarity score out of range: {self.score}")

    def swapped(self) -> 'MatchRecord':
        """Same score with the two sides exchanged."""
        return MatchRecord(self.score, self.candidate_path, self.reference_path)


@dataclass(frozen=True)
class DeletionCandidate:
    path: str
    reason: str
    score: int = 0

    @staticmethod
    def from_match(record: MatchRecord) -> 'DeletionCandidate':
        return DeletionCandidate(
            path=record.candidate_path,
            reason=f"reference: {record.reference_path} score: {record.score}%",
            score=record.score,
        )


@dataclass(frozen=True)
class DeletionLogEntry:
    timestamp: str
    path: str
    reason: str

    def to_line(self) -> str:
        return f"{self.timestamp}\t{self.path}\t{self.reason}"

    @staticmethod
    def from_line(line: str) -> Optional['DeletionLogEntry']:
        parts = line.rstrip("\n").split("\t", 2)
        if len(parts) != 3 or not parts[1]:
            return None
        return DeletionLogEntry(timestamp=parts[0], path=parts[1], reason=parts[2])


@dataclass
class DeletionSummary:
    """Outcome of one pass of the deletion executor."""
    planned: List[DeletionCandidate] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    refused: List[str] = field(default_factory=list)
    failed: List[tuple] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.planned) + len(self.deleted) + len(self.missing) + \
            len(self.refused) + len(self.failed)


@dataclass
class PipelineStats:
    """
    Statistics collected while the pipeline runs.
    """
    total_time: float = 0.0
    stage_stats: Dict[str, Dict[str, Union[int, float, bool]]] = field(default_factory=dict)

    def update_stage(self, stage_name: str, units: int, duration: float, skipped: bool = False) -> None:
        self.stage_stats[stage_name] = {
            "units": units,
            "time": duration,
            "skipped": skipped,
        }

    def print_summary(self) -> str:
        lines = [
            "Pipeline Statistics:",
            f"Total Execution Time: {self.total_time:.3f}s\n",
            "Stage: UNITS / TIME",
        ]
        for stage, data in self.stage_stats.items():
            if data["skipped"]:
                lines.append(f"{stage}: reused persisted output")
            else:
                lines.append(f"{stage}: {data['units']} / {data['time']:.3f}s")
        return "\n".join(lines)


"""
DTO for pipeline parameters with built-in validation.
Immutable: passed to the orchestrator at construction.
"""

@dataclass(frozen=True)
class DeduplicationParams:
    """Parameters for one deduplication run with validation."""
    reference_dir: str
    candidate_dir: str
    threshold: int = 90
    state_dir: str = ".dedup_state"
    audit_log: str = "dedup_deleted.log"
    mode: RunMode = RunMode.SIMULATE
    policy: MatchPolicy = MatchPolicy.FIRST
    fallback: bool = True
    use_trash: bool = False
    ssdeep_binary: str = "ssdeep"

    def __post_init__(self):
        """Validate parameters immediately after creation."""
        if not self.reference_dir:
            raise ValueError("Reference directory cannot be empty")
        if not self.candidate_dir:
            raise ValueError("Candidate directory cannot be empty")
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, int):
            raise ValueError("Threshold must be an integer")
        if not 0 <= self.threshold <= 100:
            raise ValueError("Threshold must be between 0 and 100")
        if not self.state_dir:
            raise ValueError("State directory cannot be empty")
        if not self.audit_log:
            raise ValueError("Audit log path cannot be empty")

        reference = os.path.normpath(os.path.abspath(self.reference_dir))
        candidates = os.path.normpath(os.path.abspath(self.candidate_dir))
        if reference == candidates:
            raise ValueError("Reference and candidate directories must differ")
        if _is_within(reference, candidates) or _is_within(candidates, reference):
            raise ValueError("Reference and candidate directories must not contain each other")

    @property
    def simulate(self) -> bool:
        return self.mode == RunMode.SIMULATE


def _is_within(path: str, root: str) -> bool:
    return path.startswith(root.rstrip(os.sep) + os.sep)
