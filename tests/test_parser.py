"""
Unit tests for MatchParser.
Each supported ssdeep output dialect must parse to the exact (score, reference, candidate)
triple; incomplete lines must parse to None without raising.
"""
import pytest

from fuzzydedup.core.models import MatchRecord
from fuzzydedup.core.parser import (
    MatchParser, MarkerLineFormat, CsvLineFormat,
    ParenthesizedScore, PercentScore, LeadingFieldScore)


class TestScoreRecognizers:
    """Test the individual score extractors."""

    def test_parenthesized_score_closes_the_line(self):
        assert ParenthesizedScore().extract("/a(1).jpg matches /b.jpg (87)") == "87"

    def test_parenthesized_absent(self):
        assert ParenthesizedScore().extract("/a.jpg matches /b.jpg") is None

    def test_percent_score(self):
        assert PercentScore().extract("/a.jpg matches /b.jpg 73%") == "73"

    def test_percent_ignores_longer_numbers(self):
        assert PercentScore().extract("/a.jpg matches /b.jpg 1000%") is None

    def test_leading_field_must_be_a_bare_number(self):
        assert LeadingFieldScore().extract("88,/a.jpg matches /b.jpg") == "88"
        assert LeadingFieldScore().extract("3:abc:def,/a.jpg matches /b.jpg") is None
        assert LeadingFieldScore().extract("/a.jpg matches /b.jpg") is None


class TestMatchParserDialects:
    """Round-trip of synthetic lines with known score and paths."""

    @pytest.mark.parametrize("line, expected", [
        # Plain "A matches B (score)"
        ("/ref/a.jpg matches /rec/b.jpg (95)", MatchRecord(95, "/ref/a.jpg", "/rec/b.jpg")),
        # Each identity carries a comma-delimited prefix (hash,path)
        ("3:abc:def,/ref/a.jpg matches 3:abd:deg,/rec/b.jpg (87)", MatchRecord(87, "/ref/a.jpg", "/rec/b.jpg")),
        # Score as the leading comma-delimited field
        ("91,/ref/a.jpg matches /rec/b.jpg", MatchRecord(91, "/ref/a.jpg", "/rec/b.jpg")),
        # Score as a percentage
        ("/ref/a.jpg matches /rec/b.jpg 64%", MatchRecord(64, "/ref/a.jpg", "/rec/b.jpg")),
        # Paths with spaces survive
        ("/ref/my photo.jpg matches /rec/f123 copy.jpg (100)",
         MatchRecord(100, "/ref/my photo.jpg", "/rec/f123 copy.jpg")),
        # Score zero is a valid score
        ("/ref/a.jpg matches /rec/b.jpg (0)", MatchRecord(0, "/ref/a.jpg", "/rec/b.jpg")),
    ])
    def test_marker_dialects(self, line, expected):
        assert MatchParser().parse(line) == expected

    def test_csv_dialect(self):
        record = MatchParser().parse('"/ref/a,1.jpg","/rec/b.jpg",77')
        assert record == MatchRecord(77, "/ref/a,1.jpg", "/rec/b.jpg")

    def test_signature_file_prefixes_are_stripped(self):
        parser = MatchParser(strip_prefixes=["/state/index-1.ssdeep:", "/state/index-2.ssdeep:"])
        record = parser.parse("/state/index-1.ssdeep:/ref/a.jpg matches /state/index-2.ssdeep:/rec/b.jpg (93)")
        assert record == MatchRecord(93, "/ref/a.jpg", "/rec/b.jpg")

    def test_trailing_text_after_score_is_stripped_from_candidate(self):
        record = MatchParser().parse("/ref/a.jpg matches /rec/b.jpg (95) [extra]")
        assert record.candidate_path == "/rec/b.jpg"


class TestMatchParserRejects:
    """Lines missing any of the three fields must yield None, never raise."""

    @pytest.mark.parametrize("line", [
        "",
        "   ",
        "ssdeep,1.1--blocksize:hash:hash,filename",
        '96:abcdef:ghijk,"/ref/a.jpg"',
        "# unit 3",
        "/ref/a.jpg matches /rec/b.jpg",          # no score anywhere
        "matches /rec/b.jpg (90)",                 # no reference path
        "/ref/a.jpg matches (90)",                 # no candidate path
        "/ref/a.jpg matches /rec/b.jpg (250)",     # score out of range
        "/ref/a.jpg /rec/b.jpg (90)",              # no marker
        '"/ref/a.jpg","/rec/b.jpg",high',          # csv with non-numeric score
    ])
    def test_incomplete_lines_return_none(self, line):
        assert MatchParser().parse(line) is None

    def test_parse_all_skips_malformed_lines(self):
        lines = [
            "garbage",
            "/ref/a.jpg matches /rec/b.jpg (95)",
            "",
            "/ref/a.jpg matches /rec/c.jpg (40)",
        ]
        records = MatchParser().parse_all(lines)
        assert [r.candidate_path for r in records] == ["/rec/b.jpg", "/rec/c.jpg"]


class TestPluggableFormats:
    """The recognizer list is open and ordered: first success wins."""

    def test_custom_format_is_tried_in_order(self):
        class ArrowFormat:
            def parse(self, line):
                if "=>" not in line:
                    return None
                left, right = line.split("=>")
                path, score = right.rsplit(" ", 1)
                return MatchRecord(int(score), left.strip(), path.strip())

        parser = MatchParser(formats=[ArrowFormat(), MarkerLineFormat()])
        assert parser.parse("/ref/a.jpg => /rec/b.jpg 99") == MatchRecord(99, "/ref/a.jpg", "/rec/b.jpg")
        assert parser.parse("/ref/a.jpg matches /rec/b.jpg (95)") == MatchRecord(95, "/ref/a.jpg", "/rec/b.jpg")

    def test_csv_only_parser_ignores_marker_lines(self):
        parser = MatchParser(formats=[CsvLineFormat()])
        assert parser.parse("/ref/a.jpg matches /rec/b.jpg (95)") is None


class TestNumberedFileNames:
    """Recovered trees are full of "name (2).jpg"; only the score closing the line counts."""

    @pytest.mark.parametrize("line, expected", [
        ("/ref/a.jpg matches /rec/photo (2).jpg (95)", MatchRecord(95, "/ref/a.jpg", "/rec/photo (2).jpg")),
        ("/ref/photo (2).jpg matches /rec/b.jpg (95)", MatchRecord(95, "/ref/photo (2).jpg", "/rec/b.jpg")),
        # ssdeep -m shape: the reference follows the marker
        ("/rec/photo (2).jpg matches /state/ref.ssdeep:/ref/a (3).jpg (88)",
         MatchRecord(88, "/rec/photo (2).jpg", "/ref/a (3).jpg")),
        ("/ref/a.jpg matches /rec/photo (2).jpg 64%", MatchRecord(64, "/ref/a.jpg", "/rec/photo (2).jpg")),
        ("/ref/a.jpg matches /rec/photo (2) (1).jpg (91) [extra]",
         MatchRecord(91, "/ref/a.jpg", "/rec/photo (2) (1).jpg")),
    ])
    def test_parenthesized_number_in_path_is_not_the_score(self, line, expected):
        parser = MatchParser(strip_prefixes=["/state/ref.ssdeep:"])
        assert parser.parse(line) == expected

    def test_number_in_path_without_trailing_score_is_rejected(self):
        assert MatchParser().parse("/ref/a.jpg matches /rec/photo (2).jpg") is None
