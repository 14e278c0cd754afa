#!/usr/bin/env python3
"""
fuzzydedup CLI: Command line interface for fuzzy-hash deduplication of recovered files.
Simulate mode is the default: nothing is deleted unless --apply is given.
Interrupted runs (Ctrl+C, SIGTERM) stop at the next unit boundary and resume on the next invocation.
"""
from __future__ import annotations  # Enable postponed evaluation of annotations (PEP 563)
import argparse
import logging
import os
import signal
import sys
import time
from typing import Optional, NoReturn, Sequence

LOG_FORMAT = "%(levelname)-8s | %(name)-25s | %(message)s"

# === EARLY DEPENDENCY VALIDATION ===
_MISSING_DEPS = []
try:
    from send2trash import send2trash
except ImportError:
    _MISSING_DEPS.append("send2trash")

try:
    import xxhash
except ImportError:
    _MISSING_DEPS.append("xxhash")

if _MISSING_DEPS:
    print("❌ Missing required dependencies:", file=sys.stderr)
    print(f"   pip install {' '.join(_MISSING_DEPS)}", file=sys.stderr)
    sys.exit(1)

# === NORMAL IMPORTS (after validation) ===
from fuzzydedup.core.models import (
    DeduplicationParams, DeletionCandidate, PipelineState, RunMode)
from fuzzydedup.core.pipeline import PipelineResult
from fuzzydedup.commands import DeduplicationCommand
from fuzzydedup.aliases import (
    POLICY_ALIASES, POLICY_CHOICES, POLICY_HELP_TEXT, EPILOG_TEXT,
    EXIT_OK, EXIT_ERROR, EXIT_ABORTED, EXIT_CANCELLED
)


class CLIApplication:
    """Main CLI application controller."""

    def __init__(self, command: Optional[DeduplicationCommand] = None):
        self.start_time: float = time.time()
        self.verbose: bool = False
        self.quiet: bool = False
        self.command = command or DeduplicationCommand()
        self._stop_requested: bool = False

    @staticmethod
    def parse_args(args=None) -> argparse.Namespace:
        """Parse command-line arguments."""
        parser = argparse.ArgumentParser(
            prog="fuzzydedup",
            description="fuzzydedup: remove recovered files that are near-duplicates of a reference tree",
            formatter_class=argparse.RawTextHelpFormatter,
            epilog=EPILOG_TEXT
        )

        # Required arguments
        parser.add_argument(
            "--reference", "-r",
            required=True,
            type=str,
            help="Trusted reference directory (never modified)"
        )
        parser.add_argument(
            "--candidates", "-c",
            required=True,
            type=str,
            help="Directory of recovered files to deduplicate"
        )

        # Matching options
        parser.add_argument(
            "--threshold", "-t",
            default=90,
            type=int,
            metavar='',
            help="Minimum similarity score (0-100) for a file to count as a duplicate. Default: 90"
        )
        parser.add_argument(
            "--policy",
            choices=POLICY_CHOICES,
            default="first",
            type=str,
            help=POLICY_HELP_TEXT
        )
        parser.add_argument(
            "--no-fallback",
            action="store_true",
            help="Abort instead of comparing file by file when batch comparison (ssdeep -k) fails"
        )
        parser.add_argument(
            "--ssdeep",
            default="ssdeep",
            type=str,
            metavar='',
            help="ssdeep executable. Default: ssdeep"
        )

        # State options
        parser.add_argument(
            "--state-dir",
            default=".dedup_state",
            type=str,
            metavar='',
            help="Directory for indexes, reports and checkpoints. Default: .dedup_state"
        )
        parser.add_argument(
            "--log",
            default="dedup_deleted.log",
            type=str,
            metavar='',
            dest="audit_log",
            help="Append-only log of deleted files. Default: dedup_deleted.log"
        )
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Discard cached indexes, reports and checkpoints before running"
        )

        # Actions
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Really delete duplicates. Without it the run only reports what would be deleted."
        )
        parser.add_argument(
            "--trash",
            action="store_true",
            help="With --apply, move duplicates to the system trash instead of deleting them"
        )

        # Output options
        parser.add_argument(
            "--force",
            action="store_true",
            help="Skip confirmation prompt when used with --apply (for automation/scripts)"
        )
        parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output"
        )
        parser.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Show detailed statistics and progress"
        )

        return parser.parse_args(args)

    def validate_args(self, args: argparse.Namespace) -> None:
        """Validate command-line arguments before execution."""
        if args.force and not args.apply:
            self.error_exit("--force can only be used with --apply")
        if args.trash and not args.apply:
            self.error_exit("--trash can only be used with --apply")
        if not 0 <= args.threshold <= 100:
            self.error_exit("Threshold must be between 0 and 100")

        # Prevent interactive confirmation in non-TTY environments
        if args.apply and not args.force:
            if not sys.stdin.isatty() or not sys.stdout.isatty():
                self.error_exit(
                    "Cannot request interactive confirmation in non-interactive session.\n"
                    "Use --force flag to proceed without confirmation when piping output or running in scripts."
                )

        for label, directory in (("Reference", args.reference), ("Candidate", args.candidates)):
            if os.path.exists(directory) and not os.path.isdir(directory):
                self.error_exit(f"{label} path is not a directory: {directory}")

    def create_params(self, args: argparse.Namespace) -> DeduplicationParams:
        """Create DeduplicationParams from CLI arguments."""
        try:
            return DeduplicationParams(
                reference_dir=os.path.abspath(args.reference),
                candidate_dir=os.path.abspath(args.candidates),
                threshold=args.threshold,
                state_dir=os.path.abspath(args.state_dir),
                audit_log=os.path.abspath(args.audit_log),
                mode=RunMode.APPLY if args.apply else RunMode.SIMULATE,
                policy=POLICY_ALIASES[args.policy],
                fallback=not args.no_fallback,
                use_trash=args.trash,
                ssdeep_binary=args.ssdeep,
            )
        except ValueError as e:
            self.error_exit(f"Parameter error: {e}")

    def progress_callback(self, stage: str, current: int, total: Optional[int]) -> None:
        """CLI progress callback - shows progress in console."""
        if not self.verbose:
            return

        if total and total > 0:
            percent = (current / total) * 100
            sys.stderr.write(f"\r  [{stage}] {current}/{total} ({percent:.1f}%)")
        else:
            sys.stderr.write(f"\r  [{stage}] {current} files processed...")
        sys.stderr.flush()

    def stopped_flag(self) -> bool:
        """True once SIGINT/SIGTERM was received; checked between units."""
        return self._stop_requested

    def _handle_signal(self, signum, frame) -> None:
        if self._stop_requested:
            raise KeyboardInterrupt
        self._stop_requested = True
        print("\n⚠️  Interrupt received, stopping after the current file "
              "(press Ctrl+C again to stop immediately)...", file=sys.stderr)

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def confirm_deletion(self, candidates: Sequence[DeletionCandidate]) -> bool:
        """Preview and interactive confirmation before real deletions."""
        print()
        for candidate in candidates[:20]:
            print(f"   [DEL]  {candidate.path}")
            print(f"          {candidate.reason}")
        if len(candidates) > 20:
            print(f"   ...and {len(candidates) - 20} more files")
        print("=" * 60)

        if not sys.stdin.isatty() or not sys.stdout.isatty():
            self.error_exit(
                "Lost interactive terminal during operation. "
                "Use --force to proceed in non-interactive environments."
            )

        response = input(f"Are you sure you want to delete {len(candidates)} files? [y/N]: ")
        return response.strip().lower() in ("y", "yes")

    def output_results(self, result: PipelineResult, params: DeduplicationParams) -> None:
        """Print what the run did (or would do)."""
        if self.verbose:
            sys.stderr.write("\n")
            print(result.stats.print_summary())

        if result.state == PipelineState.ABORTED:
            print(f"❌ Error: stage '{result.failed_stage.value}' failed: {result.error}", file=sys.stderr)
            print(f"   Completed stages are kept in {params.state_dir}; run again to retry.", file=sys.stderr)
            if result.failed_stage != PipelineState.DELETING:
                print("   No files were deleted by the failed stage.", file=sys.stderr)
            else:
                print(f"   Files deleted before the failure are listed in {params.audit_log}.", file=sys.stderr)
            return

        if result.state == PipelineState.CANCELLED:
            print(f"⚠️  Run cancelled: {result.error}", file=sys.stderr)
            print("   Progress is saved; run the same command again to resume.", file=sys.stderr)
            return

        if self.quiet:
            return

        summary = result.summary
        if not result.candidates:
            print("No duplicate files found.")
            return

        if params.simulate:
            for candidate in summary.planned:
                print(f"[DRY-RUN] Would delete: {candidate.path} matched: {candidate.reason}")
            print(f"\n{len(summary.planned)} files would be deleted. "
                  f"Re-run with --apply to delete them.")
            return

        print(f"✅ Deleted {len(summary.deleted)} files (audit log: {params.audit_log})")
        if summary.missing:
            print(f"   {len(summary.missing)} files were already gone")
        if summary.refused:
            print(f"⚠️  Refused {len(summary.refused)} files outside {params.candidate_dir}")
        if summary.failed:
            print(f"⚠️  Failed to delete {len(summary.failed)} file(s):")
            for path, error in summary.failed[:5]:
                print(f"  • {os.path.basename(path)}: {error}")
            if len(summary.failed) > 5:
                print(f"  ...and {len(summary.failed) - 5} more files")

    @staticmethod
    def exit_code(result: PipelineResult) -> int:
        if result.state == PipelineState.DONE:
            return EXIT_OK
        if result.state == PipelineState.CANCELLED:
            return EXIT_CANCELLED
        return EXIT_ABORTED

    @staticmethod
    def error_exit(message: str, code: int = EXIT_ERROR) -> NoReturn:
        """Print error and exit."""
        print(f"❌ Error: {message}", file=sys.stderr)
        sys.exit(code)

    def run(self, argv=None) -> int:
        """Main entry point. Returns the process exit code."""
        args = self.parse_args(argv)
        self.verbose = args.verbose
        self.quiet = args.quiet
        logging.getLogger().setLevel(logging.INFO if self.verbose else logging.WARNING)

        self.validate_args(args)
        params = self.create_params(args)

        if args.reset:
            removed = self.command.reset(params)
            if not self.quiet:
                print(f"Cleared {removed} cached state files from {params.state_dir}")

        if not self.quiet:
            print("=== Recovered data deduplication ===")
            print(f"Mode: {params.mode.display_name}")
            print(f"Reference: {params.reference_dir}")
            print(f"Candidates: {params.candidate_dir}")
            print(f"Threshold: {params.threshold}%  Policy: {params.policy.value}")

        confirm = None if (params.simulate or args.force) else self.confirm_deletion
        result = self.command.execute(
            params,
            progress_callback=self.progress_callback if self.verbose else None,
            stopped_flag=self.stopped_flag,
            confirm=confirm
        )

        self.output_results(result, params)

        elapsed = time.time() - self.start_time
        if self.verbose:
            print(f"\nCompleted in {elapsed:.2f} seconds")
        return self.exit_code(result)


def main() -> None:
    """Application entry point."""
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
    app = CLIApplication()
    app.install_signal_handlers()
    try:
        code = app.run()
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user (Ctrl+C)")
        sys.exit(EXIT_CANCELLED)
    except Exception as e:
        if os.environ.get("DEBUG"):
            raise
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    sys.exit(code)


if __name__ == "__main__":
    main()
