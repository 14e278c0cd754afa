"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/errors.py
Stage-level failures of the deduplication pipeline.

Per-unit problems (an unparsable report line, a file that is already gone at
delete time) are not exceptions: the parser returns None and the executor
counts the file as missing.
"""
from typing import Optional


class DeduplicationError(RuntimeError):
    """Base class for failures that end a pipeline stage."""

    def __init__(self, message: str, stage: Optional[str] = None, path: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.path:
            message = f"{message} [{self.path}]"
        return message


class OracleUnavailable(DeduplicationError):
    """The fuzzy hashing tool could not be executed (missing binary, unsupported option, failure exit)."""


class DirectoryUnavailable(DeduplicationError):
    """A tracked directory does not exist or cannot be read."""


class StateCorruption(DeduplicationError):
    """A persisted checkpoint or index is unreadable. The stage state must be reset."""


class StateLocked(DeduplicationError):
    """Another live run is using the same state directory."""


class OperationCancelled(DeduplicationError):
    """Raised at a cancellation point after the current unit was committed."""
