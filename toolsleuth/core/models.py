"""Domain models for the toolsleuth diagnostic tool.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

TOOL_FOUND_MESSAGE = "Problematic Tool Found"
SCHEMA_NOT_SPECIFIED = "Not specified"


@dataclass(frozen=True)
class HTTPRequest:
    """The request half of an intercepted exchange."""

    url: str
    method: str
    body: str


@dataclass(frozen=True)
class HTTPResponse:
    """The response half of an intercepted exchange."""

    status_code: int
    body: str


@dataclass(frozen=True)
class Exchange:
    """One HTTP request paired with its eventual response.

    Ephemeral: built by the interception layer from a single proxied
    flow and discarded once correlation is done.
    """

    request: HTTPRequest
    response: HTTPResponse | None = None


@dataclass(frozen=True)
class ToolDefinition:
    """A tool as declared in the request body's ``tools`` sequence."""

    name: str | None
    input_schema: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Convert input_schema to a read-only proxy."""
        if isinstance(self.input_schema, dict):
            object.__setattr__(
                self, "input_schema", MappingProxyType(self.input_schema)
            )

    @property
    def schema_url(self) -> str:
        """The declared JSON-schema dialect, or a placeholder if absent."""
        value = self.input_schema.get("$schema")
        if value is None:
            return SCHEMA_NOT_SPECIFIED
        return str(value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolDefinition":
        """Build a tool definition from a decoded request body entry.

        Raises:
            TypeError: If data is not a mapping.
        """
        if not isinstance(data, Mapping):
            raise TypeError(
                f"tool definition must be an object, got {type(data).__name__}"
            )
        schema = data.get("input_schema")
        if not isinstance(schema, Mapping):
            schema = {}
        return cls(name=data.get("name"), input_schema=dict(schema))


class DiagnosisOutcome(Enum):
    """What a single correlation concluded.

    - TOOL_FOUND: the error index resolved to a tool in the request
    - INVALID_INDEX: the error carried an index outside the tools sequence
    - INDEX_NOT_FOUND: a validation error without a recognizable index
    """

    TOOL_FOUND = "tool_found"
    INVALID_INDEX = "invalid_index"
    INDEX_NOT_FOUND = "index_not_found"


@dataclass(frozen=True)
class DiagnosisRecord:
    """Structured identification of the tool behind a validation rejection.

    Created once per run and never mutated. Optional fields are left out
    of the serialized form when absent.
    """

    timestamp: str
    message: str
    tool_name: str | None = None
    tool_index: int | None = None
    schema_url: str | None = None

    def __post_init__(self) -> None:
        """Validate record invariants on creation."""
        if not self.message:
            raise ValueError("message must be a non-empty string")
        if self.tool_index is not None and self.tool_index < 0:
            raise ValueError(
                f"tool_index must be non-negative, got {self.tool_index}"
            )

    @property
    def outcome(self) -> DiagnosisOutcome:
        """Classify the record from the fields it carries."""
        if self.message == TOOL_FOUND_MESSAGE:
            return DiagnosisOutcome.TOOL_FOUND
        if self.message.startswith("Error: Invalid tool index"):
            return DiagnosisOutcome.INVALID_INDEX
        return DiagnosisOutcome.INDEX_NOT_FOUND

    @classmethod
    def tool_found(
        cls, timestamp: datetime, index: int, tool: ToolDefinition
    ) -> "DiagnosisRecord":
        return cls(
            timestamp=timestamp.isoformat(),
            message=TOOL_FOUND_MESSAGE,
            tool_name=tool.name,
            tool_index=index,
            schema_url=tool.schema_url,
        )

    @classmethod
    def invalid_index(cls, timestamp: datetime, index: int) -> "DiagnosisRecord":
        return cls(
            timestamp=timestamp.isoformat(),
            message=f"Error: Invalid tool index {index} found in error message.",
        )

    @classmethod
    def index_not_found(
        cls, timestamp: datetime, error_message: str
    ) -> "DiagnosisRecord":
        return cls(
            timestamp=timestamp.isoformat(),
            message=(
                "400 Bad Request detected, but tool index not found "
                f"in error message: {error_message}"
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the result file layout.

        Absent optional fields are skipped, except on a found tool.
        """
        data: dict[str, Any] = {"timestamp": self.timestamp}
        found = self.outcome is DiagnosisOutcome.TOOL_FOUND
        if found or self.tool_name is not None:
            data["tool_name"] = self.tool_name
        if found or self.tool_index is not None:
            data["tool_index"] = self.tool_index
        if found or self.schema_url is not None:
            data["schema_url"] = self.schema_url
        data["message"] = self.message
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DiagnosisRecord":
        """Rebuild a record read back from the diagnosis channel.

        Raises:
            ValueError: If required fields are missing or malformed.
        """
        timestamp = data.get("timestamp")
        message = data.get("message")
        if not isinstance(timestamp, str) or not timestamp:
            raise ValueError("record is missing 'timestamp'")
        if not isinstance(message, str) or not message:
            raise ValueError("record is missing 'message'")
        tool_index = data.get("tool_index")
        if tool_index is not None and not isinstance(tool_index, int):
            raise ValueError(
                f"'tool_index' must be an integer, got {type(tool_index).__name__}"
            )
        return cls(
            timestamp=timestamp,
            message=message,
            tool_name=data.get("tool_name"),
            tool_index=tool_index,
            schema_url=data.get("schema_url"),
        )


class RunState(Enum):
    """Lifecycle states of a single diagnosis run.

    Normal flow:
        INIT → CHECKING_PREREQS → CHANNEL_READY → PROXY_STARTING → PROXY_UP
        → CLIENT_CONFIGURED → REQUEST_SENT → POLLING → DIAGNOSED
        → CLEANUP → DONE

    POLLING may instead end in TIMED_OUT or PROXY_DIED, and pre-flight or
    proxy start problems end in FAILED. Every path passes through CLEANUP.
    """

    INIT = "init"
    CHECKING_PREREQS = "checking_prereqs"
    CHANNEL_READY = "channel_ready"
    PROXY_STARTING = "proxy_starting"
    PROXY_UP = "proxy_up"
    CLIENT_CONFIGURED = "client_configured"
    REQUEST_SENT = "request_sent"
    POLLING = "polling"
    DIAGNOSED = "diagnosed"
    TIMED_OUT = "timed_out"
    PROXY_DIED = "proxy_died"
    FAILED = "failed"
    CLEANUP = "cleanup"
    DONE = "done"
