"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/pipeline.py
Orchestrates the resumable fuzzy-hash deduplication pipeline.

STATE MACHINE
-------------
Idle → Indexing reference → Indexing candidates → Comparing → Filtering → Deleting → Done
Any stage may end the run in Aborted (unrecoverable stage failure) or Cancelled
(cooperative interruption, or the operator declined deletion).

STAGE CONTRACTS
---------------
Each stage reads the durable output of the previous one and writes its own:
  • Indexing   : index-<dir key>.ssdeep          (see core/indexer.py)
  • Comparing  : matches-<pair key>.txt          raw ssdeep report
  • Filtering  : candidates-<run key>.txt        "path<TAB>reason" per line
  • Deleting   : audit log                       "timestamp<TAB>path<TAB>reason"
A stage whose output exists and is non-empty is skipped on re-invocation. Inside a
stage, work is unit by unit with a ProgressTracker checkpoint, so an interrupted stage
resumes at its first uncommitted unit.

OWNERSHIP
---------
The pipeline is the only component that creates, reuses or clears state records.
"""

import logging
import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from fuzzydedup.core.errors import DeduplicationError, OperationCancelled, OracleUnavailable, StateCorruption
from fuzzydedup.core.executor import DeletionExecutor
from fuzzydedup.core.filter import CandidateFilter
from fuzzydedup.core.indexer import IndexBuilder
from fuzzydedup.core.interfaces import SimilarityOracle
from fuzzydedup.core.models import (
    DeduplicationParams, DeletionCandidate, DeletionSummary, HashIndex, PipelineState, PipelineStats)
from fuzzydedup.core.oracle import SsdeepOracle
from fuzzydedup.core.parser import MatchParser
from fuzzydedup.core.progress import ProgressTracker
from fuzzydedup.core.store import FileStateStore, record_key

logger = logging.getLogger(__name__)

UNIT_MARKER = re.compile(r"^# unit (\d+)$")
REASON_SCORE = re.compile(r"score: (\d{1,3})%")

ProgressCallback = Callable[[str, int, object], None]
StoppedFlag = Callable[[], bool]


@dataclass
class PipelineResult:
    """Final state of one run and everything it produced."""
    state: PipelineState
    stats: PipelineStats
    candidates: List[DeletionCandidate] = field(default_factory=list)
    summary: Optional[DeletionSummary] = None
    failed_stage: Optional[PipelineState] = None
    error: Optional[DeduplicationError] = None

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.DONE


class DeduplicationPipeline:
    """
    Runs the stages for one immutable DeduplicationParams.
    Collaborators can be injected (tests use a fake oracle).
    """

    def __init__(self,
                 params: DeduplicationParams,
                 oracle: Optional[SimilarityOracle] = None,
                 store: Optional[FileStateStore] = None,
                 executor: Optional[DeletionExecutor] = None):
        self.params = params
        self.oracle = oracle or SsdeepOracle(params.ssdeep_binary)
        self.store = store or FileStateStore(params.state_dir)
        self.indexer = IndexBuilder(self.store, self.oracle, excluded_dirs=[str(self.store.state_dir)])
        self.executor = executor or DeletionExecutor(
            params.audit_log, allowed_root=params.candidate_dir, use_trash=params.use_trash)
        self.state = PipelineState.IDLE

        pair_key = record_key(os.path.realpath(params.reference_dir), os.path.realpath(params.candidate_dir))
        run_key = record_key(pair_key, params.threshold, params.policy.value)
        self.report_name = f"matches-{pair_key}"
        self.candidates_name = f"candidates-{run_key}"
        self.delete_progress_name = f"delete-{run_key}.progress"

    # =============================
    # Public API
    # =============================

    def run(self,
            stopped_flag: Optional[StoppedFlag] = None,
            progress_callback: Optional[ProgressCallback] = None,
            confirm: Optional[Callable[[Sequence[DeletionCandidate]], bool]] = None) -> PipelineResult:
        """
        Run every stage that has not completed yet.
        `confirm` is asked before real deletions start; returning False cancels the run.
        """
        stats = PipelineStats()
        result = PipelineResult(state=PipelineState.IDLE, stats=stats)
        start_time = time.time()
        self.state = PipelineState.IDLE
        logger.info(f"Starting deduplication run in {self.params.mode.value} mode")

        try:
            with self.store.lock():
                reference = self._stage(PipelineState.INDEXING_REFERENCE, stats, lambda: self._index(
                    self.params.reference_dir, PipelineState.INDEXING_REFERENCE, stopped_flag, progress_callback))
                candidates_index = self._stage(PipelineState.INDEXING_CANDIDATES, stats, lambda: self._index(
                    self.params.candidate_dir, PipelineState.INDEXING_CANDIDATES, stopped_flag, progress_callback))
                self._stage(PipelineState.COMPARING, stats, lambda: self._compare(
                    reference, candidates_index, stopped_flag, progress_callback))
                result.candidates = self._stage(PipelineState.FILTERING, stats, lambda: self._filter(
                    reference, candidates_index, stopped_flag, progress_callback))
                result.summary = self._stage(PipelineState.DELETING, stats, lambda: self._delete(
                    result.candidates, stopped_flag, progress_callback, confirm))
                self._transition(PipelineState.DONE)
        except OperationCancelled as e:
            logger.warning(f"Run cancelled during '{self.state.value}': {e}")
            result.failed_stage = self.state
            result.error = e
            self._transition(PipelineState.CANCELLED)
        except DeduplicationError as e:
            logger.error(f"Stage '{self.state.value}' failed: {e}")
            e.stage = e.stage or self.state.value
            result.failed_stage = self.state
            result.error = e
            self._transition(PipelineState.ABORTED)
        finally:
            stats.total_time = time.time() - start_time

        result.state = self.state
        return result

    def reset(self) -> int:
        """Forget every persisted stage output. The audit log is never touched."""
        with self.store.lock():
            return self.store.reset()

    def load_candidates(self) -> List[DeletionCandidate]:
        """Candidate list of a completed filtering stage (empty if none)."""
        candidates = []
        for number, line in enumerate(self.store.read_lines(self.candidates_name + ".txt"), start=1):
            if not line.strip():
                continue
            path, sep, reason = line.partition("\t")
            if not sep or not path:
                raise StateCorruption(f"Invalid candidate on line {number}",
                                      path=str(self.store.path(self.candidates_name + ".txt")))
            match = REASON_SCORE.search(reason)
            candidates.append(DeletionCandidate(path=path, reason=reason, score=int(match.group(1)) if match else 0))
        return candidates

    # =============================
    # Stage plumbing
    # =============================

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline state: {self.state.value} -> {state.value}")
        self.state = state

    def _stage(self, state: PipelineState, stats: PipelineStats, body: Callable[[], tuple]):
        self._transition(state)
        started = time.time()
        value, units, reused = body()
        stats.update_stage(state.value, units, time.time() - started, skipped=reused)
        return value

    @staticmethod
    def _check_stopped(stopped_flag: Optional[StoppedFlag], message: str, stage: PipelineState) -> None:
        if stopped_flag and stopped_flag():
            raise OperationCancelled(message, stage=stage.value)

    # =============================
    # Stages
    # =============================

    def _index(self, directory, state, stopped_flag, progress_callback):
        index, reused = self.indexer.build(directory, stopped_flag=stopped_flag,
                                           progress_callback=progress_callback, stage_name=state.value)
        return index, len(index), reused

    def _compare(self, reference: HashIndex, candidates: HashIndex, stopped_flag, progress_callback):
        report_name = self.report_name + ".txt"
        partial_name = self.report_name + ".partial"
        tracker = ProgressTracker(self.store, self.report_name + ".progress")

        if self.store.is_complete(report_name):
            logger.info("Reusing existing comparison report")
            return self.store.path(report_name), 0, True

        reference_path = self.indexer.index_path(reference.directory)
        candidate_path = self.indexer.index_path(candidates.directory)

        # A fallback scan already under way is resumed rather than retrying the batch form.
        if tracker.load() == 0:
            try:
                logger.info("Running batch comparison (ssdeep -k)")
                self.oracle.compare_indexes(reference_path, candidate_path, self.store.path(partial_name))
                self.store.promote(partial_name, report_name)
                return self.store.path(report_name), 1, False
            except OracleUnavailable as e:
                self.store.clear(partial_name)
                self._check_stopped(stopped_flag, "Batch comparison interrupted", PipelineState.COMPARING)
                if not self.params.fallback:
                    raise
                logger.warning(f"Batch comparison unavailable ({e}), falling back to per-file comparison")

        units = self._compare_per_file(reference_path, candidates, partial_name, tracker,
                                       stopped_flag, progress_callback)
        self.store.promote(partial_name, report_name)
        tracker.clear()
        return self.store.path(report_name), units, False

    def _compare_per_file(self, reference_path: Path, candidates: HashIndex, partial_name: str,
                          tracker: ProgressTracker, stopped_flag, progress_callback) -> int:
        """
        One oracle call per candidate file. Each file's output is appended as a block
        headed by "# unit N"; blocks at or beyond the checkpoint are uncommitted and dropped.
        """
        done = tracker.load()
        total = len(candidates.entries)
        if done > total:
            raise StateCorruption(f"Comparison checkpoint {done} is beyond {total} candidate files",
                                  stage=PipelineState.COMPARING.value)

        if done == 0:
            self.store.write_lines(partial_name, [])
        else:
            if not self.store.path(partial_name).exists():
                raise StateCorruption("Comparison checkpoint exists but its partial report is missing",
                                      stage=PipelineState.COMPARING.value,
                                      path=str(self.store.path(partial_name)))
            kept = []
            for line in self.store.read_lines(partial_name):
                marker = UNIT_MARKER.match(line)
                if marker and int(marker.group(1)) >= done:
                    break
                kept.append(line)
            self.store.write_lines(partial_name, kept)

        message = "Comparison interrupted after {} of %d files" % total
        for index in range(done, total):
            self._check_stopped(stopped_flag, message.format(index), PipelineState.COMPARING)
            entry = candidates.entries[index]
            output = self.oracle.compare_single(reference_path, entry.path)
            # The child process may have died from the same interrupt; do not commit its output.
            self._check_stopped(stopped_flag, message.format(index), PipelineState.COMPARING)

            self.store.append_lines(partial_name, [f"# unit {index}"] + output.splitlines())
            tracker.advance(index + 1)

            if progress_callback:
                progress_callback(PipelineState.COMPARING.value, index + 1, total)
        return total - done

    def _filter(self, reference: HashIndex, candidates: HashIndex, stopped_flag, progress_callback):
        list_name = self.candidates_name + ".txt"
        journal_name = self.candidates_name + ".journal"
        tracker = ProgressTracker(self.store, self.candidates_name + ".progress")

        if self.store.is_complete(list_name):
            logger.info("Reusing existing deletion candidate list")
            return self.load_candidates(), 0, True

        candidate_filter = CandidateFilter(self.params.threshold, self.params.policy,
                                           reference_paths=reference.paths(),
                                           candidate_paths=candidates.paths())
        parser = MatchParser(strip_prefixes=[f"{self.indexer.index_path(reference.directory)}:",
                                             f"{self.indexer.index_path(candidates.directory)}:"])

        done = tracker.load()
        if done == 0:
            self.store.write_lines(journal_name, [])
        else:
            if not self.store.path(journal_name).exists():
                raise StateCorruption("Filter checkpoint exists but its candidate journal is missing",
                                      stage=PipelineState.FILTERING.value,
                                      path=str(self.store.path(journal_name)))
            for candidate in self._read_journal(journal_name):
                candidate_filter.restore(candidate)

        report_lines = self.store.read_lines(self.report_name + ".txt")
        total = len(report_lines)
        if done > total:
            raise StateCorruption(f"Filter checkpoint {done} is beyond the {total} report lines",
                                  stage=PipelineState.FILTERING.value)

        for index in range(done, total):
            record = parser.parse(report_lines[index])
            if record is not None:
                candidate = candidate_filter.offer(record)
                if candidate is not None:
                    self.store.append_lines(journal_name,
                                            [f"{candidate.path}\t{candidate.score}\t{candidate.reason}"])
            tracker.advance(index + 1)

            if progress_callback:
                progress_callback(PipelineState.FILTERING.value, index + 1, total)
            if index + 1 < total:
                self._check_stopped(stopped_flag, f"Filtering interrupted after {index + 1} of {total} lines",
                                    PipelineState.FILTERING)

        selected = candidate_filter.candidates()
        self.store.write_lines(list_name, [f"{c.path}\t{c.reason}" for c in selected])
        tracker.clear()
        self.store.clear(journal_name)
        logger.info(f"Generated {len(selected)} deletion candidates")
        return selected, total - done, False

    def _read_journal(self, journal_name: str) -> List[DeletionCandidate]:
        entries = []
        for number, line in enumerate(self.store.read_lines(journal_name), start=1):
            parts = line.split("\t", 2)
            if len(parts) != 3 or not parts[0] or not parts[1].isdigit():
                raise StateCorruption(f"Invalid candidate journal line {number}",
                                      stage=PipelineState.FILTERING.value,
                                      path=str(self.store.path(journal_name)))
            entries.append(DeletionCandidate(path=parts[0], reason=parts[2], score=int(parts[1])))
        return entries

    def _delete(self, candidates: List[DeletionCandidate], stopped_flag, progress_callback, confirm):
        simulate = self.params.simulate
        if not candidates:
            logger.info("No duplicate files to delete")
            return DeletionSummary(), 0, False

        if not simulate and confirm is not None and not confirm(candidates):
            raise OperationCancelled("Deletion declined by user", stage=PipelineState.DELETING.value)

        tracker = None if simulate else ProgressTracker(self.store, self.delete_progress_name)
        summary = self.executor.apply(candidates, simulate=simulate, tracker=tracker,
                                      stopped_flag=stopped_flag, progress_callback=progress_callback)
        if tracker:
            tracker.clear()
        return summary, summary.total, False
