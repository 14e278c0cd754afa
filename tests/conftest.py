"""
Shared fixtures for fuzzydedup tests.
Creates isolated reference/recovered trees and a fake ssdeep oracle with scripted scores.
"""
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

import pytest

from fuzzydedup.core.errors import OracleUnavailable
from fuzzydedup.core.indexer import load_index
from fuzzydedup.core.models import DeduplicationParams


class FakeOracle:
    """
    Stands in for ssdeep.
    Scores are scripted per (reference file name, candidate file name). Batch output uses
    ssdeep -k's "<sigfile>:<path> matches <sigfile>:<path> (score)" shape, per-file output
    uses ssdeep -m's "<file> matches <sigfile>:<path> (score)" shape.
    """

    def __init__(self, scores: Optional[Dict[Tuple[str, str], int]] = None, batch_available: bool = True):
        self.scores = scores or {}
        self.batch_available = batch_available
        self.fingerprint_calls = []
        self.batch_calls = 0
        self.single_calls = []

    def fingerprint(self, file_path: str) -> Optional[str]:
        self.fingerprint_calls.append(file_path)
        return f"3:{os.path.basename(file_path)}:fp"

    def compare_indexes(self, reference_index: Path, candidate_index: Path, output: Path) -> None:
        self.batch_calls += 1
        if not self.batch_available:
            raise OracleUnavailable("ssdeep -k not supported")

        references = load_index(reference_index, "")
        candidates = load_index(candidate_index, "")
        lines = []
        for candidate in candidates.entries:
            for reference in references.entries:
                score = self.scores.get((reference.name, candidate.name))
                if score is not None:
                    lines.append(f"{reference_index}:{reference.path} matches "
                                 f"{candidate_index}:{candidate.path} ({score})")
        Path(output).write_text("".join(line + "\n" for line in lines), encoding="utf-8")

    def compare_single(self, reference_index: Path, file_path: str) -> str:
        self.single_calls.append(file_path)
        references = load_index(reference_index, "")
        lines = []
        for reference in references.entries:
            score = self.scores.get((reference.name, os.path.basename(file_path)))
            if score is not None:
                lines.append(f"{file_path} matches {reference_index}:{reference.path} ({score})")
        return "".join(line + "\n" for line in lines)


@pytest.fixture
def trees(tmp_path) -> Dict[str, Path]:
    """
    Reference tree with one original and a recovered tree with carved files:
    - ref/a.jpg        original
    - rec/b.jpg        near-duplicate of a.jpg (score scripted by each test)
    - rec/c.jpg        unrelated recovered file
    """
    reference = tmp_path / "ref"
    recovered = tmp_path / "rec"
    reference.mkdir()
    recovered.mkdir()

    (reference / "a.jpg").write_bytes(b"original photo" * 100)
    (recovered / "b.jpg").write_bytes(b"original phot0" * 100)
    (recovered / "c.jpg").write_bytes(b"something else" * 100)

    return {
        "root": tmp_path,
        "ref": reference,
        "rec": recovered,
        "state": tmp_path / "state",
        "log": tmp_path / "dedup_deleted.log",
    }


@pytest.fixture
def make_params(trees):
    """Factory for DeduplicationParams pointing at the `trees` fixture."""
    def _make(**overrides) -> DeduplicationParams:
        values = dict(
            reference_dir=str(trees["ref"]),
            candidate_dir=str(trees["rec"]),
            threshold=90,
            state_dir=str(trees["state"]),
            audit_log=str(trees["log"]),
        )
        values.update(overrides)
        return DeduplicationParams(**values)
    return _make


@pytest.fixture
def fake_oracle():
    """The FakeOracle class, for tests that build their own instances."""
    return FakeOracle
