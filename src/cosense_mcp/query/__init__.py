"""Pure query construction and page filtering helpers."""

from .dates import DateRange, filter_by_date, parse_date_bound
from .regex import compile_pattern, scan_page
from .tags import build_tag_query, normalize_tag

__all__ = [
    "DateRange",
    "build_tag_query",
    "compile_pattern",
    "filter_by_date",
    "normalize_tag",
    "parse_date_bound",
    "scan_page",
]
