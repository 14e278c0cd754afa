"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/store.py
File-backed durable store for pipeline state.

Every record is a plain text file inside the state directory. Whole-record writes go
through a temporary file, fsync and os.replace, so a record is either the old value or
the new one, never a torn write. Appends are flushed and fsynced before returning.
"""

import os
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import xxhash

from fuzzydedup.core.errors import StateCorruption, StateLocked
from fuzzydedup.core.interfaces import DurableStore

logger = logging.getLogger(__name__)

LOCK_NAME = ".lock"


def record_key(*parts: object) -> str:
    """
    Short stable key for a set of inputs, used to name state records.
    Records built from different inputs never collide, so a changed setting
    never reuses stale output.
    """
    return xxhash.xxh64("\0".join(str(part) for part in parts).encode("utf-8")).hexdigest()


def atomic_write_text(path: Path, text: str) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8", newline="\n") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


def append_text(path: Path, text: str) -> None:
    with open(path, "a", encoding="utf-8", newline="\n") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())


class FileStateStore(DurableStore):
    """
    DurableStore over a state directory.
    Also exposes paths for the stream-like records (indexes, reports, journals).
    """

    def __init__(self, state_dir: str):
        self.state_dir = Path(state_dir)

    def ensure(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def path(self, name: str) -> Path:
        return self.state_dir / name

    # ----- key/value records -----

    def get(self, name: str) -> Optional[str]:
        try:
            return self.path(name).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StateCorruption(f"Cannot read state record '{name}': {e}", path=str(self.path(name))) from e

    def set(self, name: str, value: str) -> None:
        self.ensure()
        atomic_write_text(self.path(name), value)

    def clear(self, name: str) -> None:
        try:
            self.path(name).unlink()
        except FileNotFoundError:
            pass

    # ----- line records -----

    def is_complete(self, name: str) -> bool:
        """A record counts as complete output only when it exists and is non-empty."""
        path = self.path(name)
        try:
            return path.is_file() and path.stat().st_size > 0
        except OSError:
            return False

    def read_lines(self, name: str) -> List[str]:
        text = self.get(name)
        if text is None:
            return []
        return text.splitlines()

    def write_lines(self, name: str, lines: Iterable[str]) -> None:
        self.ensure()
        atomic_write_text(self.path(name), "".join(f"{line}\n" for line in lines))

    def append_lines(self, name: str, lines: Iterable[str]) -> None:
        payload = "".join(f"{line}\n" for line in lines)
        if not payload:
            return
        self.ensure()
        append_text(self.path(name), payload)

    def promote(self, partial_name: str, final_name: str) -> None:
        """Atomically move a finished partial record into its final name."""
        os.replace(self.path(partial_name), self.path(final_name))

    def reset(self) -> int:
        """Remove every record in the state directory. Returns the number removed."""
        if not self.state_dir.is_dir():
            return 0
        removed = 0
        for entry in self.state_dir.iterdir():
            if entry.is_file() and entry.name != LOCK_NAME:
                entry.unlink()
                removed += 1
        logger.info(f"Cleared {removed} state records from {self.state_dir}")
        return removed

    # ----- single-run guard -----

    @contextmanager
    def lock(self) -> Iterator[None]:
        """
        Hold the state directory for the duration of a run.
        A lock left behind by a process that no longer exists is taken over.
        """
        self.ensure()
        lock_path = self.path(LOCK_NAME)
        for _ in range(2):
            try:
                fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                owner = self._lock_owner(lock_path)
                if owner is not None and _process_alive(owner):
                    raise StateLocked(
                        f"State directory is in use by process {owner}", path=str(self.state_dir))
                logger.warning(f"Removing stale lock left by process {owner}")
                self.clear(LOCK_NAME)
                continue
            with os.fdopen(fd, "w") as f:
                f.write(str(os.getpid()))
            break
        else:
            raise StateLocked("Could not acquire state directory lock", path=str(self.state_dir))

        try:
            yield
        finally:
            self.clear(LOCK_NAME)

    @staticmethod
    def _lock_owner(lock_path: Path) -> Optional[int]:
        try:
            return int(lock_path.read_text().strip())
        except (OSError, ValueError):
            return None


def _process_alive(pid: int) -> bool:
    if pid == os.getpid():
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True
