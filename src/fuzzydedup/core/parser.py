"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/parser.py
Turns one line of ssdeep output into a MatchRecord.

ssdeep prints matches differently depending on how it is invoked, so parsing is an
ordered list of LineFormat recognizers; the first one that yields a complete record wins.

SUPPORTED DIALECTS
------------------
Marker format   : "<a> matches <b> (87)", "hash,<a> matches hash,<b> (87)",
                  "87,<a> matches <b>", "<a> matches <b> 87%"
                  Reference is the last comma token before "matches",
                  candidate is the last comma token after it.
CSV format      : "<a>","<b>",87   (ssdeep -c)

Lines that do not produce a score and both paths (headers, comments, blank lines,
unknown dialects) return None. That is an expected outcome, not an error.
"""

import csv
import re
from typing import Iterable, List, Optional, Sequence

from fuzzydedup.core.interfaces import LineFormat, ScoreRecognizer
from fuzzydedup.core.models import MatchRecord

MATCH_MARKER = "matches"
MAX_SCORE = 100


# =============================
# Score recognizers
# =============================

class ParenthesizedScore(ScoreRecognizer):
    """
    The "(NN)" that closes the line, optionally followed by bracketed notes.
    A "(2)" inside a file name is part of the path.
    """
    _pattern = re.compile(r"\((\d{1,3})\)(?:\s*\[[^\]]*\])*\s*$")

    def extract(self, line: str) -> Optional[str]:
        match = self._pattern.search(line)
        return match.group(1) if match else None


class PercentScore(ScoreRecognizer):
    """The "NN%" that closes the line."""
    _pattern = re.compile(r"(?<!\d)(\d{1,3})%\s*$")

    def extract(self, line: str) -> Optional[str]:
        match = self._pattern.search(line)
        return match.group(1) if match else None


class LeadingFieldScore(ScoreRecognizer):
    """
    First comma-delimited field, when it is a bare number.
    A signature such as "3:abc:def" is not a score.
    """

    def extract(self, line: str) -> Optional[str]:
        if "," not in line:
            return None
        first = line.split(",", 1)[0].strip().strip('"').rstrip("%").strip()
        return first if first.isdigit() else None


DEFAULT_SCORE_RECOGNIZERS = (ParenthesizedScore(), PercentScore(), LeadingFieldScore())


def _to_score(text: Optional[str]) -> Optional[int]:
    if not text or not text.isdigit():
        return None
    score = int(text)
    return score if score <= MAX_SCORE else None


def _clean_path(token: str, strip_prefixes: Sequence[str]) -> str:
    token = token.strip().strip('"').strip()
    for prefix in strip_prefixes:
        if prefix and token.startswith(prefix):
            return token[len(prefix):].strip()
    return token


# =============================
# Line formats
# =============================

class MarkerLineFormat(LineFormat):
    """
    "<reference> matches <candidate>" with the score in one of several places.
    `strip_prefixes` removes "<signature file>:" prefixes that ssdeep puts in front of paths.
    """
    _trailing_score = re.compile(r"\s*\(\d{1,3}\)(?:\s*\[[^\]]*\])*\s*$")
    _trailing_percent = re.compile(r"\s+\d{1,3}%\s*$")

    def __init__(self,
                 score_recognizers: Sequence[ScoreRecognizer] = DEFAULT_SCORE_RECOGNIZERS,
                 strip_prefixes: Sequence[str] = (),
                 marker: str = MATCH_MARKER):
        self.score_recognizers = list(score_recognizers)
        self.strip_prefixes = list(strip_prefixes)
        self._splitter = re.compile(rf"\s+{re.escape(marker)}\s+")

    def parse(self, line: str) -> Optional[MatchRecord]:
        parts = self._splitter.split(line.strip(), maxsplit=1)
        if len(parts) != 2:
            return None
        before, after = parts

        score = None
        for recognizer in self.score_recognizers:
            score_text = recognizer.extract(line)
            if score_text:
                score = _to_score(score_text)
                break
        if score is None:
            return None

        reference_path = _clean_path(before.rstrip().rsplit(",", 1)[-1], self.strip_prefixes)
        after = self._trailing_percent.sub("", self._trailing_score.sub("", after))
        candidate_path = _clean_path(after.rsplit(",", 1)[-1], self.strip_prefixes)

        if not reference_path or not candidate_path:
            return None
        return MatchRecord(score, reference_path, candidate_path)


class CsvLineFormat(LineFormat):
    """ssdeep -c output: "<reference>","<candidate>",score"""

    def __init__(self, strip_prefixes: Sequence[str] = ()):
        self.strip_prefixes = list(strip_prefixes)

    def parse(self, line: str) -> Optional[MatchRecord]:
        if '"' not in line:
            return None
        try:
            fields = next(csv.reader([line.strip()]))
        except (csv.Error, StopIteration):
            return None
        if len(fields) != 3:
            return None

        score = _to_score(fields[2].strip())
        reference_path = _clean_path(fields[0], self.strip_prefixes)
        candidate_path = _clean_path(fields[1], self.strip_prefixes)
        if score is None or not reference_path or not candidate_path:
            return None
        return MatchRecord(score, reference_path, candidate_path)


# =============================
# Parser
# =============================

class MatchParser:
    """
    Tries each LineFormat in order, first success wins.
    The list is open: pass extra formats for other oracle versions.
    """

    def __init__(self, formats: Optional[Sequence[LineFormat]] = None, strip_prefixes: Sequence[str] = ()):
        if formats is None:
            formats = [MarkerLineFormat(strip_prefixes=strip_prefixes),
                       CsvLineFormat(strip_prefixes=strip_prefixes)]
        self.formats: List[LineFormat] = list(formats)

    def parse(self, line: str) -> Optional[MatchRecord]:
        if not line or not line.strip() or line.lstrip().startswith("#"):
            return None
        for line_format in self.formats:
            record = line_format.parse(line)
            if record is not None:
                return record
        return None

    def parse_all(self, lines: Iterable[str]) -> List[MatchRecord]:
        records = []
        for line in lines:
            record = self.parse(line)
            if record is not None:
                records.append(record)
        return records
