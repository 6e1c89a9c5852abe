"""Marker-framed diagnosis channel.

The interception proxy writes each diagnosis as a frame on its standard
output, which is redirected into a log file::

    --- CLAUDE_TOOL_DIAGNOSIS_START ---
    {"timestamp": "...", "message": "Problematic Tool Found", ...}
    --- CLAUDE_TOOL_DIAGNOSIS_END ---

The orchestrator tails that log. Several frames may accumulate; the last
complete one is authoritative. A frame without its end marker is still
being written and is ignored until the next read.
"""

import json
import logging
import threading
from pathlib import Path
from typing import TextIO

from toolsleuth.core.models import DiagnosisRecord
from toolsleuth.core.ports import DiagnosisSinkPort, DiagnosisSourcePort

logger = logging.getLogger(__name__)

START_MARKER = "--- CLAUDE_TOOL_DIAGNOSIS_START ---"
END_MARKER = "--- CLAUDE_TOOL_DIAGNOSIS_END ---"


class DiagnosisFrameCodec:
    """Encodes records as marker-delimited frames and finds them again."""

    def __init__(self, start_marker: str = START_MARKER, end_marker: str = END_MARKER):
        if not start_marker or not end_marker:
            raise ValueError("markers must be non-empty")
        if start_marker == end_marker:
            raise ValueError("start and end markers must differ")
        self.start_marker = start_marker
        self.end_marker = end_marker

    def encode(self, record: DiagnosisRecord) -> str:
        payload = json.dumps(record.to_dict())
        return f"{self.start_marker}\n{payload}\n{self.end_marker}\n"

    def extract_latest(self, text: str) -> str | None:
        """Return the payload of the last complete frame in text.

        Collects the lines strictly between each start marker and the next
        end marker. Of the last complete group with any content, the last
        non-empty line is the payload; empty groups are skipped.
        """
        latest: list[str] | None = None
        current: list[str] | None = None

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if line == self.start_marker:
                current = []
            elif line == self.end_marker:
                if current:
                    latest = current
                current = None
            elif current is not None and line:
                current.append(line)

        if not latest:
            return None
        return latest[-1]

    @staticmethod
    def decode(payload: str) -> DiagnosisRecord:
        """Parse a frame payload.

        Raises:
            ValueError: If the payload is not a valid serialized record.
        """
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError(f"frame payload must be an object, got {type(data).__name__}")
        return DiagnosisRecord.from_dict(data)


class MarkerStreamWriter(DiagnosisSinkPort):
    """Writes frames to a text stream, one write per frame."""

    def __init__(self, stream: TextIO, codec: DiagnosisFrameCodec | None = None):
        self.stream = stream
        self.codec = codec or DiagnosisFrameCodec()
        self._lock = threading.Lock()

    def publish(self, record: DiagnosisRecord) -> None:
        frame = self.codec.encode(record)
        with self._lock:
            self.stream.write(frame)
            self.stream.flush()


class MarkerLogReader(DiagnosisSourcePort):
    """Reads the latest complete frame from the proxy log file."""

    def __init__(self, path: str | Path, codec: DiagnosisFrameCodec | None = None):
        self.path = Path(path)
        self.codec = codec or DiagnosisFrameCodec()

    def read_latest(self) -> DiagnosisRecord | None:
        try:
            text = self.path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None

        payload = self.codec.extract_latest(text)
        if payload is None:
            return None

        try:
            return self.codec.decode(payload)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError; likely a write in progress
            logger.debug(f"Latest frame in {self.path} not readable yet: {e}")
            return None
