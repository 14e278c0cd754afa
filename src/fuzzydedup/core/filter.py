"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/filter.py
Threshold filtering of parsed matches into deletion candidates.

A record qualifies iff score >= threshold. Each candidate path yields at most one
DeletionCandidate; MatchPolicy decides which qualifying match is kept:
  • FIRST: the first qualifying match in stream order
  • BEST : the highest score, ties keep the earlier match
Output order is the order in which candidate paths first qualified.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from fuzzydedup.core.models import DeletionCandidate, MatchPolicy, MatchRecord

logger = logging.getLogger(__name__)


class CandidateFilter:
    """
    Streaming filter: offer() records one at a time, read candidates() at the end.

    When `reference_paths` and `candidate_paths` are given, records are checked
    against them: a record with its sides reversed is re-oriented, and a record that
    does not pair a known reference file with a known candidate file is dropped.
    """

    def __init__(self,
                 threshold: int,
                 policy: MatchPolicy = MatchPolicy.FIRST,
                 reference_paths: Optional[Set[str]] = None,
                 candidate_paths: Optional[Set[str]] = None):
        if not 0 <= threshold <= 100:
            raise ValueError("Threshold must be between 0 and 100")
        self.threshold = threshold
        self.policy = policy
        self.reference_paths = reference_paths
        self.candidate_paths = candidate_paths
        self._selected: Dict[str, DeletionCandidate] = {}

    def orient(self, record: MatchRecord) -> Optional[MatchRecord]:
        """Return the record as (reference, candidate), or None if it pairs unknown files."""
        if self.reference_paths is None or self.candidate_paths is None:
            return record
        if record.reference_path in self.reference_paths and record.candidate_path in self.candidate_paths:
            return record
        if record.candidate_path in self.reference_paths and record.reference_path in self.candidate_paths:
            return record.swapped()
        logger.debug(f"Ignoring match between untracked files: {record}")
        return None

    def offer(self, record: MatchRecord) -> Optional[DeletionCandidate]:
        """
        Feed one record. Returns the candidate if this record became the selected
        match for its path, None otherwise.
        """
        record = self.orient(record)
        if record is None or record.score < self.threshold:
            return None

        current = self._selected.get(record.candidate_path)
        if current is not None:
            if self.policy == MatchPolicy.FIRST or record.score <= current.score:
                return None

        candidate = DeletionCandidate.from_match(record)
        self._selected[record.candidate_path] = candidate
        return candidate

    def restore(self, candidate: DeletionCandidate) -> None:
        """Re-apply a candidate selected before an interruption."""
        current = self._selected.get(candidate.path)
        if current is None or (self.policy == MatchPolicy.BEST and candidate.score > current.score):
            self._selected[candidate.path] = candidate

    def candidates(self) -> List[DeletionCandidate]:
        return list(self._selected.values())


def filter_matches(matches: Iterable[MatchRecord],
                   threshold: int,
                   policy: MatchPolicy = MatchPolicy.FIRST) -> List[DeletionCandidate]:
    """Stateless form: all matches in, deletion candidates out."""
    candidate_filter = CandidateFilter(threshold, policy)
    for record in matches:
        candidate_filter.offer(record)
    return candidate_filter.candidates()
