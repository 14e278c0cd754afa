"""
Core deduplication engine: scanner, oracle adapter, parser, filter, executor and pipeline orchestrator.

This package contains the resumable foundation of fuzzydedup:
- FileScannerImpl: deterministic recursive enumeration of regular files
- SsdeepOracle: adapter over the ssdeep command line tool
- IndexBuilder: resumable, cached fuzzy-hash indexes per directory
- MatchParser: ordered recognizers for ssdeep's output dialects
- CandidateFilter: threshold + first/best match policy
- DeletionExecutor: log-then-delete with idempotent removal
- DeduplicationPipeline: stage orchestration with checkpoints
- Models: FileHandle, HashIndex, MatchRecord, DeletionCandidate and configuration objects

All components are pure Python with no GUI dependencies.
"""

from .errors import (
    DeduplicationError, OracleUnavailable, DirectoryUnavailable, StateCorruption,
    StateLocked, OperationCancelled)
from .models import (
    FileHandle, HashIndex, MatchRecord, DeletionCandidate, DeletionLogEntry, DeletionSummary,
    DeduplicationParams, PipelineStats, PipelineState, RunMode, MatchPolicy)
from .scanner import FileScannerImpl
from .store import FileStateStore
from .progress import ProgressTracker
from .oracle import SsdeepOracle
from .indexer import IndexBuilder, load_index
from .parser import MatchParser, MarkerLineFormat, CsvLineFormat
from .filter import CandidateFilter, filter_matches
from .executor import DeletionExecutor
from .pipeline import DeduplicationPipeline, PipelineResult

__all__ = [
    "DeduplicationError",
    "OracleUnavailable",
    "DirectoryUnavailable",
    "StateCorruption",
    "StateLocked",
    "OperationCancelled",
    "FileHandle",
    "HashIndex",
    "MatchRecord",
    "DeletionCandidate",
    "DeletionLogEntry",
    "DeletionSummary",
    "DeduplicationParams",
    "PipelineStats",
    "PipelineState",
    "RunMode",
    "MatchPolicy",
    "FileScannerImpl",
    "FileStateStore",
    "ProgressTracker",
    "SsdeepOracle",
    "IndexBuilder",
    "load_index",
    "MatchParser",
    "MarkerLineFormat",
    "CsvLineFormat",
    "CandidateFilter",
    "filter_matches",
    "DeletionExecutor",
    "DeduplicationPipeline",
    "PipelineResult",
]
