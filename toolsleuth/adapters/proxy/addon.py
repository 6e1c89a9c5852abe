"""mitmproxy addon that watches for tool schema rejections.

mitmproxy forwards every request and response unchanged; this addon only
reads a copy of each completed exchange. Rejections from the messages API
are correlated with their request and the diagnosis is written as a frame
to standard output, which the orchestrator redirects into the channel log.

Load it through a script that defines ``addons``::

    mitmdump -s toolsleuth_addon.py
"""

import logging
import sys
from collections.abc import Iterable, Sequence

from mitmproxy import addonmanager, ctx, exceptions, http

from toolsleuth.adapters.channel.marker_log import (
    END_MARKER,
    START_MARKER,
    DiagnosisFrameCodec,
    MarkerStreamWriter,
)
from toolsleuth.core.correlator import DEFAULT_ERROR_TYPES, DEFAULT_TARGET, ExchangeCorrelator
from toolsleuth.core.errors import ExchangeParseError
from toolsleuth.core.models import Exchange, HTTPRequest, HTTPResponse
from toolsleuth.core.ports import DiagnosisSinkPort

logger = logging.getLogger(__name__)


def _safe_decode(content: bytes | None) -> str:
    """Decode a message body, stripping a UTF-8 BOM if present."""
    if not content:
        return ""
    if content.startswith(b"\xef\xbb\xbf"):
        content = content[3:]
    return content.decode("utf-8", errors="replace")


def exchange_from_flow(flow: http.HTTPFlow) -> Exchange:
    """Copy the parts of a flow the correlator needs."""
    request = HTTPRequest(
        url=flow.request.pretty_url,
        method=flow.request.method,
        body=_safe_decode(flow.request.content),
    )
    response = None
    if flow.response is not None:
        response = HTTPResponse(
            status_code=flow.response.status_code,
            body=_safe_decode(flow.response.content),
        )
    return Exchange(request=request, response=response)


class DiagnosisAddon:
    """Publishes a diagnosis for every in-scope rejection it observes.

    Errors while handling one exchange are logged and dropped, so the
    proxy keeps serving the rest of the run's traffic.
    """

    def __init__(
        self,
        correlator: ExchangeCorrelator | None = None,
        sink: DiagnosisSinkPort | None = None,
    ):
        self.correlator = correlator or ExchangeCorrelator()
        self.sink = sink or MarkerStreamWriter(sys.stdout)
        self.published = 0

    @classmethod
    def from_settings(
        cls,
        target: str = DEFAULT_TARGET,
        error_types: Iterable[str] = DEFAULT_ERROR_TYPES,
        start_marker: str = START_MARKER,
        end_marker: str = END_MARKER,
    ) -> "DiagnosisAddon":
        """Build the addon from the plain values a generated script carries."""
        codec = DiagnosisFrameCodec(start_marker, end_marker)
        return cls(
            correlator=ExchangeCorrelator(
                target_url_fragment=target,
                error_types=error_types,
            ),
            sink=MarkerStreamWriter(sys.stdout, codec),
        )

    def load(self, loader: addonmanager.Loader) -> None:
        """Register options, defaulting to the values this addon was built with.

        They can be changed on the command line, e.g.
        ``mitmdump -s script.py --set toolsleuth_target=example.test/v1/messages``.
        """
        loader.add_option(
            name="toolsleuth_target",
            typespec=str,
            default=self.correlator.target_url_fragment,
            help="URL fragment of the endpoint whose rejections are diagnosed",
        )
        loader.add_option(
            name="toolsleuth_error_types",
            typespec=Sequence[str],
            default=sorted(self.correlator.error_types),
            help="API error types treated as schema validation rejections",
        )

    def configure(self, updated: set[str]) -> None:
        if "toolsleuth_target" in updated:
            self.correlator.target_url_fragment = ctx.options.toolsleuth_target
        if "toolsleuth_error_types" in updated:
            if not ctx.options.toolsleuth_error_types:
                raise exceptions.OptionsError("toolsleuth_error_types must not be empty")
            self.correlator.error_types = frozenset(ctx.options.toolsleuth_error_types)
        if updated & {"toolsleuth_target", "toolsleuth_error_types"}:
            logger.info(
                f"toolsleuth watching {self.correlator.target_url_fragment} "
                f"for {sorted(self.correlator.error_types)}"
            )

    def response(self, flow: http.HTTPFlow) -> None:
        """Called for every completed HTTP response."""
        try:
            exchange = exchange_from_flow(flow)
            record = self.correlator.correlate(exchange)
        except ExchangeParseError as e:
            logger.error(f"An error occurred while analyzing the response: {e}")
            return
        except Exception as e:
            logger.error(
                f"Unexpected error while analyzing {flow.request.pretty_url}: {e}",
                exc_info=True,
            )
            return

        if record is None:
            return

        try:
            self.sink.publish(record)
        except OSError as e:
            logger.error(f"Failed to publish diagnosis: {e}", exc_info=True)
            return
        self.published += 1
