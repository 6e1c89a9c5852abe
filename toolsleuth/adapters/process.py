"""Child process helpers shared by the proxy and client adapters."""

import asyncio
import logging
import os
import signal
import subprocess
from collections.abc import Mapping, Sequence
from typing import IO

logger = logging.getLogger(__name__)


def spawn_detached(
    command: Sequence[str],
    stdout: IO[bytes] | int | None = subprocess.DEVNULL,
    stderr: IO[bytes] | int | None = subprocess.DEVNULL,
    env: Mapping[str, str] | None = None,
) -> subprocess.Popen[bytes]:
    """Start a command in its own session without waiting for it."""
    logger.debug(f"Spawning: {' '.join(command)}")
    return subprocess.Popen(
        list(command),
        stdin=subprocess.DEVNULL,
        stdout=stdout,
        stderr=stderr,
        env=dict(env) if env is not None else None,
        start_new_session=True,
    )


def _signal_group(process: subprocess.Popen[bytes], sig: int) -> None:
    """Signal the process group started by spawn_detached."""
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        process.send_signal(sig)


async def terminate_process(
    process: subprocess.Popen[bytes] | None,
    grace_seconds: float,
    name: str,
) -> None:
    """Terminate a child and its group, killing it after the grace period.

    No-op for a process that was never started or has already exited.
    """
    if process is None or process.poll() is not None:
        return

    logger.info(f"Stopping {name} (pid {process.pid})")
    _signal_group(process, signal.SIGTERM)

    def _wait() -> bool:
        try:
            process.wait(timeout=grace_seconds)
            return True
        except subprocess.TimeoutExpired:
            return False

    loop = asyncio.get_running_loop()
    exited = await loop.run_in_executor(None, _wait)
    if not exited:
        logger.warning(
            f"{name} did not exit within {grace_seconds:g}s, killing it"
        )
        _signal_group(process, signal.SIGKILL)
        await loop.run_in_executor(None, process.wait)
