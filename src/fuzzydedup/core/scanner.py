"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/scanner.py
Recursive enumeration of the regular files of a tracked directory.
Features:
- Deterministic order (directories and files sorted by name) so checkpoints stay valid across runs
- Skips symbolic links, zero-byte files and excluded directories (e.g. the state directory)
- Skips paths that cannot be stored in line-oriented state files
"""

import os
import time
import logging
from pathlib import Path
from typing import List, Optional, Callable

from fuzzydedup.core.errors import DirectoryUnavailable
from fuzzydedup.core.interfaces import FileScanner
from fuzzydedup.core.models import FileHandle

logger = logging.getLogger(__name__)

UNSTORABLE_PATH_CHARS = ("\t", "\n", "\r")


class FileScannerImpl(FileScanner):
    """
    Scans a directory recursively and returns its regular files.

    Attributes:
        root_dir: Root directory to scan
        excluded_dirs: Directories that are never entered
    """

    def __init__(self, root_dir: str, excluded_dirs: Optional[List[str]] = None):
        self.root_dir = root_dir
        self.excluded_dirs = [str(Path(d).resolve()) for d in excluded_dirs] if excluded_dirs else []

    def scan(self,
             stopped_flag: Optional[Callable[[], bool]] = None,
             progress_callback: Optional[Callable[[str, int, object], None]] = None) -> List[FileHandle]:
        """
        Single-pass scan in sorted order.
        Raises DirectoryUnavailable if the root is missing or unreadable.
        """
        root_path = Path(self.root_dir)

        if not root_path.exists():
            raise DirectoryUnavailable(f"Directory does not exist: {self.root_dir}", path=self.root_dir)
        if not root_path.is_dir():
            raise DirectoryUnavailable(f"Not a directory: {self.root_dir}", path=self.root_dir)
        if not os.access(root_path, os.R_OK | os.X_OK):
            raise DirectoryUnavailable(f"Directory is not readable: {self.root_dir}", path=self.root_dir)

        found_files: List[FileHandle] = []
        processed_files = 0
        progress_interval = 5000
        progress_counter = 0
        start_time = time.time()

        logger.debug(f"Scanning directory: {self.root_dir}")

        for root, dirs, files in os.walk(str(root_path.resolve()), onerror=self._on_walk_error):
            if stopped_flag and stopped_flag():
                logger.debug("Scan interrupted by user")
                return []

            dirs[:] = sorted(d for d in dirs if self._prefilter_dirs(Path(root) / d))

            for filename in sorted(files):
                file_info = self._process_file(Path(root) / filename)
                if file_info:
                    found_files.append(file_info)
                processed_files += 1
                progress_counter += 1

                if progress_callback and progress_counter >= progress_interval:
                    progress_callback('scanning', processed_files, None)
                    progress_counter = 0

        if progress_callback and progress_counter > 0:
            progress_callback('scanning', processed_files, None)

        logger.debug(f"Scan of {self.root_dir} took {time.time() - start_time:.2f}s, "
                     f"{len(found_files)} files accepted")
        return found_files

    @staticmethod
    def _on_walk_error(error: OSError) -> None:
        logger.warning(f"Cannot read directory during scan: {error}")

    def _prefilter_dirs(self, path: Path) -> bool:
        """Skip excluded directories and symlinked directories."""
        if path.is_symlink():
            logger.debug(f"Skipping symlinked directory: {path}")
            return False

        path_str = str(path.resolve(strict=False))
        for excluded_dir in self.excluded_dirs:
            if path_str == excluded_dir or path_str.startswith(excluded_dir + os.sep):
                logger.debug(f"Skipping excluded directory: {path}")
                return False
        return True

    @staticmethod
    def _process_file(path: Path) -> Optional[FileHandle]:
        """Return a FileHandle for a regular, non-empty, storable file, else None."""
        path_str = str(path)
        if any(ch in path_str for ch in UNSTORABLE_PATH_CHARS):
            logger.warning(f"Skipping file with tab or newline in its path: {path_str!r}")
            return None

        try:
            if path.is_symlink() or not path.is_file():
                logger.debug(f"Skipping non-regular file: {path}")
                return None
            size = path.stat().st_size
        except OSError as e:
            logger.debug(f"Could not stat {path}: {e}")
            return None

        if size == 0:
            logger.debug(f"Skipping zero-byte file: {path}")
            return None

        return FileHandle(path=path_str, size=size)
