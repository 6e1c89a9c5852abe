"""Claude CLI client adapter.

Implements ClientPort by running the claude CLI once with a short prompt.
The CLI is opaque to us: it only has to honour the proxy and CA bundle
environment variables and send one real request to the messages API.

Invocation format: claude "<prompt>"
"""

import logging
import os
import subprocess
from collections.abc import Mapping

from toolsleuth.adapters.process import spawn_detached, terminate_process
from toolsleuth.core.ports import ClientPort

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "~/.claude/local/claude"
DEFAULT_PROMPT = "this is a test request"


class ClaudeCLIClient(ClientPort):
    """Launches the claude CLI as a detached one-shot request."""

    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        prompt: str = DEFAULT_PROMPT,
        show_output: bool = False,
    ):
        """Initialize the client adapter.

        Args:
            command: Path to the claude executable; ``~`` is expanded.
            prompt: The one-shot prompt that triggers an API request.
            show_output: Let the CLI write to this terminal instead of
                discarding its output.
        """
        self.command = os.path.expanduser(command)
        self.prompt = prompt
        self.show_output = show_output
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    def launch(self, env: Mapping[str, str]) -> None:
        output = None if self.show_output else subprocess.DEVNULL
        logger.info("Running claude test request...")
        self._process = spawn_detached(
            [self.command, self.prompt], stdout=output, stderr=output, env=env
        )
        logger.debug(f"claude PID: {self._process.pid}")

    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    async def stop(self, grace_seconds: float) -> None:
        await terminate_process(self._process, grace_seconds, "claude")
