"""Core domain logic for the toolsleuth diagnostic tool.

This package contains zero external dependencies and represents
the pure logic of the tool: models, error extraction, correlation,
and the run lifecycle. All process and file handling lives in the
adapters package.
"""

from .models import (
    DiagnosisOutcome,
    DiagnosisRecord,
    Exchange,
    HTTPRequest,
    HTTPResponse,
    RunState,
    ToolDefinition,
)

__all__ = [
    "DiagnosisOutcome",
    "DiagnosisRecord",
    "Exchange",
    "HTTPRequest",
    "HTTPResponse",
    "RunState",
    "ToolDefinition",
]
