"""Request/response correlation for schema validation rejections.

Decides whether an intercepted exchange is the rejection we are looking
for and, if so, joins the error's tool index against the request body of
the same exchange.
"""

import json
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from .errors import ExchangeParseError
from .extractor import ExtractorChain
from .models import DiagnosisRecord, Exchange, ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_TARGET = "api.anthropic.com/v1/messages"
DEFAULT_ERROR_TYPES = ("invalid_request_error",)
BAD_REQUEST = 400


class ExchangeCorrelator:
    """Maps an intercepted exchange to at most one diagnosis record.

    Stateless per call: the same exchange always yields the same outcome
    (only the timestamp differs). Enforcing a single diagnosis per run is
    left to the caller, which only triggers one request.
    """

    def __init__(
        self,
        target_url_fragment: str = DEFAULT_TARGET,
        error_types: Iterable[str] = DEFAULT_ERROR_TYPES,
        extractor: ExtractorChain | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.target_url_fragment = target_url_fragment
        self.error_types = frozenset(error_types)
        self.extractor = extractor or ExtractorChain()
        self.clock = clock

    def is_candidate(self, exchange: Exchange) -> bool:
        """Cheap part of the scope check: endpoint and status only."""
        if self.target_url_fragment not in exchange.request.url:
            return False
        return (
            exchange.response is not None
            and exchange.response.status_code == BAD_REQUEST
        )

    def correlate(self, exchange: Exchange) -> DiagnosisRecord | None:
        """Produce a diagnosis for an in-scope exchange, None otherwise.

        Raises:
            ExchangeParseError: If the response or request body is not the
                JSON structure the API uses.
        """
        if not self.is_candidate(exchange):
            return None
        assert exchange.response is not None

        error = self._parse_error_envelope(exchange.response.body)
        if error is None or error.get("type") not in self.error_types:
            return None

        message = error.get("message", "")
        if not isinstance(message, str):
            message = str(message)
        logger.info(f"Validation error message: {message}")

        tool_index = self.extractor.extract(message)
        logger.info(f"Extracted tool index: {tool_index}")

        if tool_index is None:
            return DiagnosisRecord.index_not_found(self.clock(), message)

        tools = self._parse_tools(exchange.request.body)
        if not 0 <= tool_index < len(tools):
            return DiagnosisRecord.invalid_index(self.clock(), tool_index)

        try:
            tool = ToolDefinition.from_dict(tools[tool_index])
        except TypeError as e:
            raise ExchangeParseError(
                f"Tool at index {tool_index} is malformed: {e}"
            ) from e
        return DiagnosisRecord.tool_found(self.clock(), tool_index, tool)

    @staticmethod
    def _parse_error_envelope(body: str) -> dict[str, Any] | None:
        """Return the ``error`` object of a response body, if it has one."""
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, TypeError) as e:
            raise ExchangeParseError(f"Response body is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            return None
        error = data.get("error")
        if not isinstance(error, dict):
            return None
        return error

    @staticmethod
    def _parse_tools(body: str) -> list[Any]:
        """Return the request body's ordered tools sequence."""
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, TypeError) as e:
            raise ExchangeParseError(f"Request body is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ExchangeParseError(
                f"Request body must be an object, got {type(data).__name__}"
            )
        tools = data.get("tools", [])
        if not isinstance(tools, list):
            raise ExchangeParseError(
                f"'tools' must be a list, got {type(tools).__name__}"
            )
        return tools
