from fuzzydedup.core.models import MatchPolicy

POLICY_ALIASES = {
    "first": MatchPolicy.FIRST,
    "best": MatchPolicy.BEST,
}

POLICY_CHOICES = list(POLICY_ALIASES.keys())

POLICY_HELP_TEXT = (
    "Which match decides when a recovered file matches several reference files:\n"
    "  first : First qualifying match in ssdeep's report wins (default)\n"
    "  best  : Highest similarity score wins\n"
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ABORTED = 2
EXIT_CANCELLED = 130

EPILOG_TEXT = """
Examples:
  Simulate: list recovered files that look like copies of the original disk
  %(prog)s -r /mnt/original_disk -c /mnt/recovered_data

  Stricter threshold, keep the highest scoring match as the reason
  %(prog)s -r /mnt/original_disk -c /mnt/recovered_data -t 95 --policy best

  Delete for real (asks for confirmation first)
  %(prog)s -r /mnt/original_disk -c /mnt/recovered_data --apply

  Same as above but without confirmation, moving files to trash (for scripts)
  %(prog)s -r /mnt/original_disk -c /mnt/recovered_data --apply --force --trash

  Interrupted runs resume where they stopped; start over with --reset
  %(prog)s -r /mnt/original_disk -c /mnt/recovered_data --reset
"""
