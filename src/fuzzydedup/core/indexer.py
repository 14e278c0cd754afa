"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/indexer.py
Builds and loads the fuzzy-hash index of a directory.

An index belongs to a directory: its records are named after an xxhash of the resolved
directory path. Building is resumable:
  1. The enumerated file list is persisted once as a manifest (fixes the unit order)
  2. Each fingerprint is appended to a partial index, then the checkpoint advances
  3. On resume, partial lines for files beyond the checkpoint are dropped
  4. When every file is done, the partial index is atomically renamed into place
A complete index is never rebuilt and never partially trusted.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from fuzzydedup.core.errors import OperationCancelled, StateCorruption
from fuzzydedup.core.interfaces import SimilarityOracle
from fuzzydedup.core.models import FileHandle, HashIndex
from fuzzydedup.core.oracle import SIGNATURE_HEADER, format_signature_line, split_signature_line
from fuzzydedup.core.progress import ProgressTracker
from fuzzydedup.core.scanner import FileScannerImpl
from fuzzydedup.core.store import FileStateStore, record_key

logger = logging.getLogger(__name__)


def load_index(path: Path, directory: str) -> HashIndex:
    """
    Read a complete signature file.
    Raises StateCorruption if it is unreadable or contains anything but signatures.
    """
    try:
        lines = Path(path).read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise StateCorruption(f"Cannot read index: {e}", path=str(path)) from e

    if not lines or not lines[0].startswith("ssdeep,"):
        raise StateCorruption("Index has no ssdeep header", path=str(path))

    entries: List[FileHandle] = []
    for number, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        parsed = split_signature_line(line)
        if parsed is None:
            raise StateCorruption(f"Invalid signature on line {number}", path=str(path))
        fingerprint, file_path = parsed
        entries.append(FileHandle(path=file_path, fingerprint=fingerprint))

    return HashIndex(directory=directory, entries=entries, source=str(path))


class IndexBuilder:
    """
    Attributes:
        store: State directory holding indexes, manifests and checkpoints
        oracle: Fingerprint provider
        excluded_dirs: Directories never indexed (the state directory, typically)
    """

    def __init__(self, store: FileStateStore, oracle: SimilarityOracle,
                 excluded_dirs: Optional[List[str]] = None):
        self.store = store
        self.oracle = oracle
        self.excluded_dirs = excluded_dirs or []

    @staticmethod
    def base_name(directory: str) -> str:
        return f"index-{record_key(os.path.realpath(directory))}"

    def index_path(self, directory: str) -> Path:
        return self.store.path(self.base_name(directory) + ".ssdeep")

    def is_built(self, directory: str) -> bool:
        return self.store.is_complete(self.base_name(directory) + ".ssdeep")

    def build(self,
              directory: str,
              stopped_flag: Optional[Callable[[], bool]] = None,
              progress_callback: Optional[Callable[[str, int, object], None]] = None,
              stage_name: str = "Indexing") -> Tuple[HashIndex, bool]:
        """
        Return (index, reused). `reused` is True when a complete index already existed.
        """
        base = self.base_name(directory)
        final_name = base + ".ssdeep"
        manifest_name = base + ".manifest"
        partial_name = base + ".partial"
        tracker = ProgressTracker(self.store, base + ".progress")

        if self.store.is_complete(final_name):
            logger.info(f"Reusing existing index for {directory}: {self.store.path(final_name)}")
            return load_index(self.store.path(final_name), directory), True

        done = tracker.load()
        manifest = self._load_or_create_manifest(directory, manifest_name, partial_name, done,
                                                 stopped_flag, progress_callback)
        total = len(manifest)
        if done > total:
            raise StateCorruption(f"Checkpoint {done} is beyond the {total} files of the manifest",
                                  stage=stage_name, path=str(self.store.path(manifest_name)))

        self._trim_partial(partial_name, set(manifest[:done]), done)

        logger.info(f"Indexing {directory}: {total} files, starting at {done}")
        start_time = time.time()
        for index in range(done, total):
            self._check_stopped(stopped_flag, directory, index, total, stage_name)
            file_path = manifest[index]
            fingerprint = self.oracle.fingerprint(file_path) if os.path.isfile(file_path) else None
            # An interrupt also kills the ssdeep child; its empty result must not be committed.
            self._check_stopped(stopped_flag, directory, index, total, stage_name)

            if fingerprint:
                self.store.append_lines(partial_name, [format_signature_line(fingerprint, file_path)])
            else:
                logger.warning(f"No fingerprint for {file_path}, leaving it out of the index")
            tracker.advance(index + 1)

            if progress_callback:
                progress_callback(stage_name, index + 1, total)

        self.store.promote(partial_name, final_name)
        tracker.clear()
        self.store.clear(manifest_name)
        logger.info(f"Index of {directory} complete in {time.time() - start_time:.2f}s")
        return load_index(self.store.path(final_name), directory), False

    @staticmethod
    def _check_stopped(stopped_flag, directory: str, index: int, total: int, stage_name: str) -> None:
        if stopped_flag and stopped_flag():
            raise OperationCancelled(f"Indexing of {directory} interrupted after {index} of {total} files",
                                     stage=stage_name)

    def _load_or_create_manifest(self, directory, manifest_name, partial_name, done,
                                 stopped_flag, progress_callback) -> List[str]:
        if self.store.is_complete(manifest_name):
            return self.store.read_lines(manifest_name)
        if done:
            raise StateCorruption("Index checkpoint exists but its manifest is missing",
                                  path=str(self.store.path(manifest_name)))

        scanner = FileScannerImpl(directory, excluded_dirs=self.excluded_dirs)
        files = scanner.scan(stopped_flag=stopped_flag, progress_callback=progress_callback)
        if stopped_flag and stopped_flag():
            raise OperationCancelled(f"Scan of {directory} interrupted")

        manifest = [f.path for f in files]
        self.store.write_lines(manifest_name, manifest)
        self.store.clear(partial_name)
        return manifest

    def _trim_partial(self, partial_name: str, committed: set, done: int) -> None:
        """Keep the header and the signatures of committed files only."""
        if done == 0:
            self.store.write_lines(partial_name, [SIGNATURE_HEADER])
            return

        lines = self.store.read_lines(partial_name)
        if not lines or lines[0] != SIGNATURE_HEADER:
            raise StateCorruption("Partial index is missing its header",
                                  path=str(self.store.path(partial_name)))
        kept = [SIGNATURE_HEADER]
        for line in lines[1:]:
            parsed = split_signature_line(line)
            if parsed and parsed[1] in committed:
                kept.append(line)
        if len(kept) != len(lines):
            logger.info(f"Dropping {len(lines) - len(kept)} uncommitted index lines")
            self.store.write_lines(partial_name, kept)
