"""Tests for the pure query helpers: tag queries, date ranges, regex scanning."""

from datetime import UTC, datetime

import pytest

from cosense_mcp.errors import ErrorCode, PatternError, ValidationError
from cosense_mcp.models import PageSummary
from cosense_mcp.query import (
    DateRange,
    build_tag_query,
    compile_pattern,
    filter_by_date,
    normalize_tag,
    parse_date_bound,
    scan_page,
)
from cosense_mcp.query.tags import line_mentions_tag

from conftest import make_page, ts


# ─────────────────────────────────────────────────────────────────────────────
# Tag Query Builder
# ─────────────────────────────────────────────────────────────────────────────


class TestBuildTagQuery:
    def test_single_tag(self):
        assert build_tag_query(["idea"]) == "([idea] OR #idea)"

    def test_one_clause_per_tag_in_input_order(self):
        query = build_tag_query(["zeta", "alpha", "mid"])

        assert query == "([zeta] OR #zeta) ([alpha] OR #alpha) ([mid] OR #mid)"

    @pytest.mark.parametrize("raw", ["[idea]", "#idea", "[#idea]", "idea#"])
    def test_decoration_is_stripped(self, raw):
        assert build_tag_query([raw]) == "([idea] OR #idea)"

    def test_empty_list_is_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            build_tag_query([])

        assert exc_info.value.code == ErrorCode.NO_TAGS
        assert "No tags provided" in exc_info.value.message

    def test_tag_that_normalizes_to_empty_passes_through(self):
        """Documented edge case: not guarded."""
        assert build_tag_query(["[]"]) == "([] OR #)"

    def test_normalize_tag_keeps_inner_characters(self):
        assert normalize_tag("[multi word]") == "multi word"

    def test_line_mentions_tag_in_either_notation(self):
        assert line_mentions_tag("see [idea] here", ["idea"])
        assert line_mentions_tag("tagged #idea", ["#idea"])
        assert not line_mentions_tag("just an idea", ["idea"])


# ─────────────────────────────────────────────────────────────────────────────
# Date Range Filter
# ─────────────────────────────────────────────────────────────────────────────


class TestParseDateBound:
    def test_bare_date_is_utc_midnight(self):
        assert parse_date_bound("2024-01-01", "from") == datetime(2024, 1, 1, tzinfo=UTC)

    def test_offset_is_converted_to_utc(self):
        parsed = parse_date_bound("2024-01-01T09:00:00+09:00", "to")

        assert parsed == datetime(2024, 1, 1, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, ""])
    def test_absent_bound_is_open(self, value):
        assert parse_date_bound(value, "from") is None

    @pytest.mark.parametrize("value", ["yesterday", "2024-13-01", "2024-02-30"])
    def test_invalid_date_names_the_bound(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_date_bound(value, "to")

        assert '"to"' in exc_info.value.message
        assert exc_info.value.code == ErrorCode.INVALID_DATE


class TestFilterByDate:
    def _pages(self):
        return [
            PageSummary(title="old", created=ts(2023, 12, 31, 12), updated=ts(2024, 3, 1)),
            PageSummary(title="new", created=ts(2024, 1, 2), updated=ts(2024, 1, 2)),
            PageSummary(title="undated"),
        ]

    def test_from_bound_on_created(self):
        kept = filter_by_date(self._pages(), DateRange.parse("2024-01-01", None), "created")

        assert [p.title for p in kept] == ["new"]

    def test_to_bound_is_inclusive(self):
        kept = filter_by_date(self._pages(), DateRange.parse(None, "2024-01-02"), "created")

        assert [p.title for p in kept] == ["old", "new"]

    def test_bare_to_date_is_start_of_day(self):
        pages = [PageSummary(title="noon", updated=ts(2024, 1, 2, 12))]

        assert filter_by_date(pages, DateRange.parse(None, "2024-01-02"), "updated") == []

    def test_both_bounds(self):
        kept = filter_by_date(
            self._pages(), DateRange.parse("2024-02-01", "2024-04-01"), "updated"
        )

        assert [p.title for p in kept] == ["old"]

    def test_open_range_still_drops_pages_without_timestamp(self):
        kept = filter_by_date(self._pages(), DateRange(), "updated")

        assert [p.title for p in kept] == ["old", "new"]

    def test_describe(self):
        assert DateRange.parse("2024-01-01", "2024-02-01").describe() == (
            "between 2024-01-01 and 2024-02-01"
        )
        assert DateRange.parse("2024-01-01", None).describe() == "after 2024-01-01"
        assert DateRange.parse(None, "2024-02-01").describe() == "before 2024-02-01"
        assert DateRange().describe() == ""


# ─────────────────────────────────────────────────────────────────────────────
# Regex Scanner
# ─────────────────────────────────────────────────────────────────────────────


class TestCompilePattern:
    def test_default_flags_ignore_case(self):
        assert compile_pattern("todo").first_match("TODO: x") == "TODO"

    def test_explicit_flags_replace_default(self):
        """flags="g" does not imply case-insensitive matching."""
        assert compile_pattern("todo", "g").first_match("TODO: x") is None

    def test_multiline_and_dotall(self):
        assert compile_pattern("^b", "m").first_match("a\nb") == "b"
        assert compile_pattern("a.b", "s").first_match("a\nb") == "a\nb"

    def test_sticky_anchors_at_start(self):
        assert compile_pattern("b", "y").first_match("ab") is None
        assert compile_pattern("a", "y").first_match("ab") == "a"

    def test_invalid_pattern(self):
        with pytest.raises(PatternError) as exc_info:
            compile_pattern("(unclosed")

        assert '"(unclosed"' in exc_info.value.message
        assert exc_info.value.code == ErrorCode.INVALID_PATTERN

    @pytest.mark.parametrize("flags", ["q", "ii", "gz"])
    def test_invalid_flags(self, flags):
        with pytest.raises(PatternError):
            compile_pattern("x", flags)

    def test_empty_pattern(self):
        with pytest.raises(ValidationError, match="No regex pattern"):
            compile_pattern("")


class TestScanPage:
    def test_content_match_uses_one_based_line_numbers(self):
        page = make_page("Tasks", ["intro", "TODO: x"])

        matches = scan_page(page, page, compile_pattern("TODO", "g"))

        assert len(matches) == 1
        assert matches[0].line_number == 3
        assert matches[0].match == "TODO"
        assert matches[0].line == "TODO: x"

    def test_title_match_is_line_zero(self):
        page = make_page("Tasks")

        matches = scan_page(page, page, compile_pattern("task"))

        # The title also appears as body line 1
        assert [m.line_number for m in matches] == [0, 1]
        assert matches[0].line == "[Title] Tasks"

    def test_matches_keep_line_order(self):
        page = make_page("Log", ["a1", "b", "a2", "a3"])

        matches = scan_page(page, page, compile_pattern(r"a\d"))

        assert [m.line_number for m in matches] == [2, 4, 5]

    def test_no_matches(self):
        page = make_page("Quiet", ["nothing here"])

        assert scan_page(page, page, compile_pattern("zzz")) == []

    def test_long_lines_are_not_truncated_in_records(self):
        long_line = "x" * 150 + " needle"
        page = make_page("Long", [long_line])

        matches = scan_page(page, page, compile_pattern("needle"))

        assert matches[0].line == long_line
