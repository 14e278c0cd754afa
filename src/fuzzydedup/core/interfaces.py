"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

interfaces.py

Defines core interfaces (Protocols) used throughout the deduplication pipeline.
These protocols enforce structural typing using Python's `typing.Protocol` so that
the orchestrator can run against real ssdeep, a fake oracle in tests, or another
durable store without changes.

Key Components:
---------------
- SimilarityOracle: the external fuzzy hashing capability (fingerprint + compare).
- ScoreRecognizer / LineFormat: pluggable recognizers for oracle output dialects.
- DurableStore: named small records that survive a crash (get/set/clear).
- FileScanner: recursive enumeration of regular files.
"""

from pathlib import Path
from typing import Protocol, List, Optional, Callable

from fuzzydedup.core.models import FileHandle, MatchRecord


class SimilarityOracle(Protocol):
    """
    Interface for the fuzzy hashing tool.

    Implementations must raise OracleUnavailable when the tool cannot run at all,
    which is a different outcome from "ran and found nothing".
    """

    def fingerprint(self, file_path: str) -> Optional[str]:
        """Fuzzy hash of a single file, or None if the file cannot be hashed."""
        ...

    def compare_indexes(self, reference_index: Path, candidate_index: Path, output: Path) -> None:
        """Batch-compare two signature files, writing the raw report to `output`."""
        ...

    def compare_single(self, reference_index: Path, file_path: str) -> str:
        """Compare one file against a signature file and return the raw matches."""
        ...


class ScoreRecognizer(Protocol):
    """Extracts the similarity score text from one output line."""

    def extract(self, line: str) -> Optional[str]:
        ...


class LineFormat(Protocol):
    """
    One oracle output dialect.
    Returns a MatchRecord if the line is in this dialect and complete, None otherwise.
    """

    def parse(self, line: str) -> Optional[MatchRecord]:
        ...


class DurableStore(Protocol):
    """
    Small named records that survive a crash.
    `set` must be durable before it returns.
    """

    def get(self, name: str) -> Optional[str]:
        ...

    def set(self, name: str, value: str) -> None:
        ...

    def clear(self, name: str) -> None:
        ...


class FileScanner(Protocol):
    """
    Interface for enumerating regular files under a directory.

    Methods:
        scan: Returns the files in a stable, deterministic order.
    """
    def scan(
        self,
        stopped_flag: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[FileHandle]:
        ...
