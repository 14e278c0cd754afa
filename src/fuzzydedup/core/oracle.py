"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/oracle.py
Adapter over the ssdeep command line tool.

Invocations used:
  ssdeep -s FILE                 fingerprint one file
  ssdeep -s -k REF_SIGS CAND_SIGS  batch comparison of two signature files
  ssdeep -s -m REF_SIGS FILE     one file against a signature file (fallback)

A missing binary or a failing batch invocation raises OracleUnavailable. That is kept
apart from a successful run that simply printed no matches.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from fuzzydedup.core.errors import OracleUnavailable
from fuzzydedup.core.interfaces import SimilarityOracle

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "ssdeep,1.1--blocksize:hash:hash,filename"


def split_signature_line(line: str) -> Optional[tuple]:
    """
    Split a signature line 'blocksize:hash:hash,"path"' into (fingerprint, path).
    Returns None for headers and anything else that is not a signature line.
    """
    line = line.rstrip("\r\n")
    if not line or line.startswith("ssdeep,"):
        return None
    fingerprint, sep, quoted_path = line.partition(',"')
    if not sep or not quoted_path.endswith('"'):
        return None
    path = quoted_path[:-1]
    if not path or fingerprint.count(":") != 2:
        return None
    return fingerprint, path


def format_signature_line(fingerprint: str, path: str) -> str:
    return f'{fingerprint},"{path}"'


class SsdeepOracle(SimilarityOracle):
    """SimilarityOracle backed by the ssdeep executable."""

    def __init__(self, binary: str = "ssdeep"):
        self.binary = binary

    def _run(self, args: List[str], **kwargs) -> subprocess.CompletedProcess:
        command = [self.binary] + args
        logger.debug(f"Running: {' '.join(command)}")
        try:
            return subprocess.run(command, check=False, **kwargs)
        except FileNotFoundError as e:
            raise OracleUnavailable(f"ssdeep executable not found: {self.binary}") from e
        except OSError as e:
            raise OracleUnavailable(f"Cannot execute {self.binary}: {e}") from e

    def fingerprint(self, file_path: str) -> Optional[str]:
        result = self._run(["-s", file_path], capture_output=True, text=True, errors="replace")
        if result.returncode != 0:
            logger.warning(f"ssdeep could not hash {file_path} (exit {result.returncode})")
            return None

        for line in result.stdout.splitlines():
            parsed = split_signature_line(line)
            if parsed:
                return parsed[0]
        logger.warning(f"ssdeep printed no signature for {file_path}")
        return None

    def compare_indexes(self, reference_index: Path, candidate_index: Path, output: Path) -> None:
        with open(output, "w", encoding="utf-8") as fh:
            result = self._run(["-s", "-k", str(reference_index), str(candidate_index)],
                               stdout=fh, stderr=subprocess.PIPE, text=True, errors="replace")
        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            raise OracleUnavailable(
                f"Batch comparison failed with exit code {result.returncode}"
                f"{': ' + detail if detail else ''}. Check that your ssdeep version supports -k")

    def compare_single(self, reference_index: Path, file_path: str) -> str:
        result = self._run(["-s", "-m", str(reference_index), file_path],
                           capture_output=True, text=True, errors="replace")
        if result.returncode != 0:
            logger.warning(f"ssdeep could not compare {file_path} (exit {result.returncode})")
        return result.stdout or ""
