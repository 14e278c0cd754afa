"""
fuzzydedup: remove recovered files that are near-duplicates of a trusted reference tree.

Core features:
- Fuzzy similarity via ssdeep instead of exact hashing (carved files are rarely byte-identical)
- Resumable: indexes, comparison report and candidate list are cached, every stage is checkpointed
- Simulate by default; apply mode logs every deletion before it happens
- Optional deletion to system trash (via send2trash)
- CLI interface for headless/server usage
"""

# Get version
try:
    from importlib.metadata import version as _version
    __version__ = _version("fuzzydedup")
except Exception:
    try:
        import tomllib  # Python 3.11+
    except ImportError:
        import tomli as tomllib  # Python < 3.11: pip install tomli

    with open("pyproject.toml", "rb") as f:
        __version__ = tomllib.load(f)["project"]["version"]

# Public API: only what users should import directly
from fuzzydedup.commands import DeduplicationCommand
from fuzzydedup.core import (
    DeduplicationParams, RunMode, MatchPolicy, PipelineState, MatchRecord, DeletionCandidate,
    DeduplicationPipeline, PipelineResult)
from fuzzydedup.services.file_service import FileService

__all__ = [
    "DeduplicationCommand",
    "DeduplicationParams",
    "RunMode",
    "MatchPolicy",
    "PipelineState",
    "MatchRecord",
    "DeletionCandidate",
    "DeduplicationPipeline",
    "PipelineResult",
    "FileService",
    "__version__",
]
