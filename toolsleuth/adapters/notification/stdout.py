"""Stdout report adapter.

Implements ResultSinkPort by printing the diagnosis to the terminal with
human-readable formatting.
"""

import asyncio
import logging

from toolsleuth.core.models import DiagnosisOutcome, DiagnosisRecord
from toolsleuth.core.ports import ResultSinkPort

logger = logging.getLogger(__name__)


class StdoutReportAdapter(ResultSinkPort):
    """Prints the diagnosis to stdout."""

    def __init__(self, result_path: str | None = None):
        """Initialize stdout report adapter.

        Args:
            result_path: If set, mention where the JSON result was saved.
        """
        self.result_path = result_path

    async def persist(self, record: DiagnosisRecord) -> None:
        await asyncio.to_thread(print, self.format_report(record))

    def format_report(self, record: DiagnosisRecord) -> str:
        lines = [
            "=" * 80,
            "TOOL SCHEMA DIAGNOSIS",
            "=" * 80,
            f"Time: {record.timestamp}",
            f"Result: {record.message}",
        ]
        if record.outcome is DiagnosisOutcome.TOOL_FOUND:
            lines.extend(
                [
                    f"Tool: {record.tool_name}",
                    f"Index: {record.tool_index}",
                    f"Schema: {record.schema_url}",
                ]
            )
        elif record.outcome is DiagnosisOutcome.INVALID_INDEX:
            lines.append(
                "The error referenced a tool position the request does not have."
            )
        if self.result_path:
            lines.append(f"Saved to: {self.result_path}")
        lines.append("=" * 80)
        return "\n".join(lines)
