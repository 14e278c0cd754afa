"""
Unified command for a deduplication run.
This is the single entry point to the pipeline for the CLI and for library users.
"""
from typing import Callable, Optional, Sequence

from fuzzydedup.core.models import DeduplicationParams, DeletionCandidate
from fuzzydedup.core.pipeline import DeduplicationPipeline, PipelineResult


class DeduplicationCommand:
    """
    Builds the pipeline for the given parameters and runs it:
    1. Index reference and candidate directories (cached between runs)
    2. Compare, filter by threshold, build the candidate list
    3. Report (simulate) or delete (apply)

    Usage:
        params = DeduplicationParams(reference_dir="/mnt/original", candidate_dir="/mnt/recovered")
        command = DeduplicationCommand()
        result = command.execute(
            params,
            progress_callback=cli_progress_printer,
            stopped_flag=signal_handler_check
        )
    """

    def __init__(self, pipeline_factory: Callable[[DeduplicationParams], DeduplicationPipeline] = DeduplicationPipeline):
        self._pipeline_factory = pipeline_factory
        self._pipeline: Optional[DeduplicationPipeline] = None

    def execute(
            self,
            params: DeduplicationParams,
            progress_callback: Optional[Callable[[str, int, Optional[int]], None]] = None,
            stopped_flag: Optional[Callable[[], bool]] = None,
            confirm: Optional[Callable[[Sequence[DeletionCandidate]], bool]] = None
    ) -> PipelineResult:
        """
        Run (or resume) the pipeline.

        Args:
            params: Validated run parameters
            progress_callback: (stage: str, current: int, total: Optional[int]) -> None
            stopped_flag: () -> bool (returns True if the run should stop at the next unit boundary)
            confirm: (candidates) -> bool, asked before real deletions

        Returns:
            PipelineResult with the final state, candidates and deletion summary
        """
        self._pipeline = self._pipeline_factory(params)
        return self._pipeline.run(
            stopped_flag=stopped_flag,
            progress_callback=progress_callback,
            confirm=confirm
        )

    def reset(self, params: DeduplicationParams) -> int:
        """Clear all persisted stage state for these parameters' state directory."""
        return self._pipeline_factory(params).reset()
