"""JSON result file adapter.

Implements ResultSinkPort by writing the final diagnosis as pretty-printed
JSON. The result file is the terminal artifact of a run and is never
removed by cleanup.
"""

import asyncio
import json
import logging
from pathlib import Path

from toolsleuth.core.models import DiagnosisRecord
from toolsleuth.core.ports import ResultSinkPort

logger = logging.getLogger(__name__)


class JSONResultFileAdapter(ResultSinkPort):
    """Writes the diagnosis to a fixed JSON file."""

    def __init__(self, result_path: str | Path):
        """Initialize the adapter.

        Args:
            result_path: Destination file. Parent directories are created
                on first write.

        Raises:
            ValueError: If result_path is an existing directory.
        """
        self.result_path = Path(result_path)
        if self.result_path.is_dir():
            raise ValueError(f"result_path is a directory: {result_path}")

    async def persist(self, record: DiagnosisRecord) -> None:
        content = json.dumps(record.to_dict(), indent=2) + "\n"
        await asyncio.to_thread(self._write, content)
        logger.info(f"Diagnosis saved to {self.result_path}")

    def _write(self, content: str) -> None:
        self.result_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.result_path.with_suffix(self.result_path.suffix + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(self.result_path)
