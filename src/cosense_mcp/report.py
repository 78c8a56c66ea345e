"""Uniform text reports for every tool result.

Operations build a structured Report (success, empty or error) out of ordered
parts; text is produced only by render() at the response boundary.

Success:

    ## Heading

    Filter line
    Found 2 pages

    ### 1. First item
    detail line

    ### 2. Second item

Error:

    Error details:
    Message: ...
    Operation: ...
    Project: ...
    Timestamp: 2024-01-01T00:00:00.000Z
"""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from .models import TextContent, ToolResponse

ReportKind = Literal["success", "empty", "error"]


def format_timestamp(timestamp: int | None) -> str:
    """Render unix seconds as "YYYY-MM-DD HH:MM:SS" (UTC)."""
    if not timestamp:
        return ""
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


def format_iso(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix."""
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class ReportSection(BaseModel):
    """One result item (numbered) or a named block (unnumbered)."""

    heading: str
    lines: list[str] = Field(default_factory=list)
    numbered: bool = True


class Report(BaseModel):
    """The outcome of a single tool invocation."""

    kind: ReportKind
    operation: str
    heading: str = ""
    summary: list[str] = Field(default_factory=list)
    sections: list[ReportSection] = Field(default_factory=list)
    message: str = ""
    context: list[tuple[str, str]] = Field(default_factory=list)
    code: str = ""
    timestamp: datetime | None = None

    @classmethod
    def success(
        cls,
        operation: str,
        heading: str,
        summary: list[str],
        sections: list[ReportSection],
    ) -> "Report":
        return cls(
            kind="success",
            operation=operation,
            heading=heading,
            summary=summary,
            sections=sections,
        )

    @classmethod
    def empty(cls, operation: str, message: str) -> "Report":
        return cls(kind="empty", operation=operation, message=message)

    @classmethod
    def error(
        cls,
        operation: str,
        message: str,
        context: dict[str, str] | None = None,
        code: str = "",
    ) -> "Report":
        return cls(
            kind="error",
            operation=operation,
            message=message,
            context=list((context or {}).items()),
            code=code,
            timestamp=datetime.now(UTC),
        )

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

    def render(self) -> str:
        if self.kind == "empty":
            return self.message
        if self.kind == "error":
            return self._render_error()
        return self._render_success()

    def _render_success(self) -> str:
        lines = [f"## {self.heading}", ""]
        if self.summary:
            lines.extend(self.summary)
            lines.append("")

        number = 0
        for section in self.sections:
            if section.numbered:
                number += 1
                lines.append(f"### {number}. {section.heading}")
            else:
                lines.append(f"### {section.heading}")
            lines.extend(section.lines)
            lines.append("")

        return "\n".join(lines).strip()

    def _render_error(self) -> str:
        lines = [
            "Error details:",
            f"Message: {self.message}",
            f"Operation: {self.operation}",
        ]
        lines.extend(f"{name}: {value}" for name, value in self.context)
        lines.append(f"Timestamp: {format_iso(self.timestamp or datetime.now(UTC))}")
        return "\n".join(lines)

    def to_response(self) -> ToolResponse:
        return ToolResponse(
            content=[TextContent(text=self.render())],
            is_error=self.is_error,
        )
