"""mitmdump process adapter.

Implements InterceptorPort by running ``mitmdump`` with a generated
addon script. The script and the raw log are working files of a single
run and are removed during cleanup.
"""

import asyncio
import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from toolsleuth.adapters.channel.marker_log import END_MARKER, START_MARKER
from toolsleuth.adapters.process import spawn_detached, terminate_process
from toolsleuth.core.correlator import DEFAULT_ERROR_TYPES, DEFAULT_TARGET
from toolsleuth.core.errors import ProxyStartFailure
from toolsleuth.core.ports import InterceptorPort

logger = logging.getLogger(__name__)

SCRIPT_TEMPLATE = '''"""Interception script generated by toolsleuth.

Removed automatically when the run ends.
"""

from toolsleuth.adapters.proxy.addon import DiagnosisAddon

addons = [
    DiagnosisAddon.from_settings(
        target={target!r},
        error_types={error_types!r},
        start_marker={start_marker!r},
        end_marker={end_marker!r},
    )
]
'''

LOG_TAIL_LINES = 20


class MitmdumpInterceptor(InterceptorPort):
    """Runs mitmdump as a detached child with output captured to a log."""

    def __init__(
        self,
        script_path: str | Path,
        log_path: str | Path,
        command: str = "mitmdump",
        listen_host: str = "127.0.0.1",
        listen_port: int = 8080,
        target: str = DEFAULT_TARGET,
        error_types: Sequence[str] = DEFAULT_ERROR_TYPES,
        start_marker: str = START_MARKER,
        end_marker: str = END_MARKER,
        startup_grace_seconds: float = 3.0,
        extra_args: Sequence[str] = (),
    ):
        """Initialize the mitmdump adapter.

        Args:
            script_path: Where to write the generated addon script.
            log_path: File receiving mitmdump's stdout and stderr; this is
                the diagnosis channel.
            command: mitmdump executable.
            listen_host: Proxy listen address.
            listen_port: Proxy listen port.
            target: URL fragment of the endpoint to watch.
            error_types: API error types that count as schema rejections.
            start_marker: Line opening a diagnosis frame.
            end_marker: Line closing a diagnosis frame.
            startup_grace_seconds: Wait before the first liveness probe.
            extra_args: Additional mitmdump arguments.
        """
        self.script_path = Path(script_path)
        self.log_path = Path(log_path)
        self.command = command
        self.listen_host = listen_host
        self.listen_port = listen_port
        self.target = target
        self.error_types = tuple(error_types)
        self.start_marker = start_marker
        self.end_marker = end_marker
        self.startup_grace_seconds = startup_grace_seconds
        self.extra_args = tuple(extra_args)
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    def render_script(self) -> str:
        return SCRIPT_TEMPLATE.format(
            target=self.target,
            error_types=list(self.error_types),
            start_marker=self.start_marker,
            end_marker=self.end_marker,
        )

    def materialize_script(self) -> Path:
        self.script_path.parent.mkdir(parents=True, exist_ok=True)
        self.script_path.write_text(self.render_script(), encoding="utf-8")
        return self.script_path

    def build_command(self) -> list[str]:
        return [
            self.command,
            "--listen-host",
            self.listen_host,
            "--listen-port",
            str(self.listen_port),
            "-s",
            str(self.script_path),
            *self.extra_args,
        ]

    async def start(self) -> None:
        if self.is_alive():
            logger.warning("mitmdump already running")
            return

        logger.info(f"Starting mitmdump on {self.listen_host}:{self.listen_port}")
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with self.log_path.open("wb") as log:
            try:
                self._process = spawn_detached(
                    self.build_command(), stdout=log, stderr=subprocess.STDOUT
                )
            except OSError as e:
                raise ProxyStartFailure(
                    f"mitmdump could not be launched: {e}",
                    remediation=self.failure_hint(),
                ) from e

        await asyncio.sleep(self.startup_grace_seconds)

        if not self.is_alive():
            assert self._process is not None
            raise ProxyStartFailure(
                f"mitmdump failed to start (exit code {self._process.returncode})",
                remediation=self.failure_hint(),
            )
        logger.info(f"mitmdump PID: {self._process.pid}")

    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    async def stop(self, grace_seconds: float) -> None:
        await terminate_process(self._process, grace_seconds, "mitmdump")

    def failure_hint(self) -> str:
        """Point at the log, quoting its tail since cleanup deletes it."""
        hint = f"Check {self.log_path} for details."
        try:
            lines = self.log_path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError:
            return hint
        if not lines:
            return hint
        tail = "\n".join(lines[-LOG_TAIL_LINES:])
        return f"{hint} Last lines of the log:\n{tail}"

    def discard_artifacts(self) -> None:
        for path in (self.script_path, self.log_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove {path}: {e}")
