"""Run lifecycle for a single diagnosis.

The orchestrator drives one run through its states: pre-flight checks,
proxy startup, client configuration, the triggering request, and a
bounded poll of the diagnosis channel. Every resource is registered for
release the moment it is acquired, so cleanup happens on success,
failure, and cancellation alike.
"""

import asyncio
import logging
import signal
from contextlib import AsyncExitStack

from .environment import DEFAULT_CA_BUNDLE_VAR, DEFAULT_PROXY_VAR, ProxyEnvironment
from .errors import DiagnosisTimeout, ProxyDied, ToolsleuthError
from .models import DiagnosisRecord, RunState
from .ports import (
    ClientPort,
    DiagnosisSourcePort,
    InterceptorPort,
    PreflightPort,
    ResultSinkPort,
)

logger = logging.getLogger(__name__)


class DiagnosisOrchestrator:
    """Runs exactly one diagnosis and tears everything down afterwards."""

    def __init__(
        self,
        preflight: PreflightPort,
        interceptor: InterceptorPort,
        client: ClientPort,
        channel: DiagnosisSourcePort,
        result_sinks: list[ResultSinkPort],
        proxy_url: str = "http://127.0.0.1:8080",
        proxy_var: str = DEFAULT_PROXY_VAR,
        ca_bundle_var: str = DEFAULT_CA_BUNDLE_VAR,
        timeout_seconds: float = 60.0,
        poll_interval_seconds: float = 1.0,
        shutdown_grace_seconds: float = 5.0,
    ):
        """Initialize the orchestrator.

        Args:
            preflight: Checks for external programs and the CA certificate.
            interceptor: The interception proxy process.
            client: The chat client that sends the triggering request.
            channel: Where the proxy's diagnosis records are read from.
            result_sinks: Receivers of the final diagnosis, in order.
            proxy_url: Address the client should send its traffic through.
            proxy_var: Environment variable naming the proxy.
            ca_bundle_var: Environment variable naming the extra CA bundle.
            timeout_seconds: Upper bound on the wait for a diagnosis.
            poll_interval_seconds: Delay between channel checks.
            shutdown_grace_seconds: How long child processes get to exit
                after being terminated, before they are killed.
        """
        self.preflight = preflight
        self.interceptor = interceptor
        self.client = client
        self.channel = channel
        self.result_sinks = result_sinks
        self.proxy_url = proxy_url
        self.proxy_var = proxy_var
        self.ca_bundle_var = ca_bundle_var
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self.state = RunState.INIT
        self.history: list[RunState] = [RunState.INIT]
        self.environment: ProxyEnvironment | None = None
        self._task: asyncio.Task[DiagnosisRecord] | None = None
        self._cleaning_up = False
        self._signals_installed: list[int] = []

    async def run(self) -> DiagnosisRecord:
        """Perform one diagnosis run.

        Returns:
            The diagnosis record that was persisted.

        Raises:
            PrerequisiteMissing: A required program is not installed.
            CertificateMissing: The interception certificate is missing.
            ProxyStartFailure: The proxy did not come up.
            DiagnosisTimeout: No diagnosis within timeout_seconds.
            ProxyDied: The proxy exited while polling.
            asyncio.CancelledError: The run was interrupted by a signal.
        """
        self._task = asyncio.current_task()  # type: ignore[assignment]
        self._setup_signal_handlers()
        stack = AsyncExitStack()
        try:
            return await self._execute(stack)
        except ToolsleuthError:
            if self.state not in (RunState.TIMED_OUT, RunState.PROXY_DIED):
                self._transition(RunState.FAILED)
            raise
        finally:
            self._cleaning_up = True
            self._transition(RunState.CLEANUP)
            try:
                await stack.aclose()
            finally:
                self._remove_signal_handlers()
                self._transition(RunState.DONE)
                logger.info("Cleanup complete")

    async def _execute(self, stack: AsyncExitStack) -> DiagnosisRecord:
        self._transition(RunState.CHECKING_PREREQS)
        self.preflight.check_tools()
        ca_bundle_path = self.preflight.check_certificate()
        self._transition(RunState.CHANNEL_READY)

        stack.callback(self.interceptor.discard_artifacts)
        script = self.interceptor.materialize_script()
        logger.info(f"Interception script written to {script}")

        self._transition(RunState.PROXY_STARTING)
        stack.push_async_callback(self.interceptor.stop, self.shutdown_grace_seconds)
        await self.interceptor.start()
        self._transition(RunState.PROXY_UP)

        self.environment = ProxyEnvironment(
            proxy_url=self.proxy_url,
            ca_bundle_path=ca_bundle_path,
            proxy_var=self.proxy_var,
            ca_bundle_var=self.ca_bundle_var,
        )
        stack.enter_context(self.environment.applied())
        self._transition(RunState.CLIENT_CONFIGURED)

        stack.push_async_callback(self.client.stop, self.shutdown_grace_seconds)
        self.client.launch(self.environment.client_env())
        self._transition(RunState.REQUEST_SENT)

        record = await self._poll_for_diagnosis()
        self._transition(RunState.DIAGNOSED)
        logger.info(f"Diagnosis found: {record.message}")

        for sink in self.result_sinks:
            await sink.persist(record)
        return record

    async def _poll_for_diagnosis(self) -> DiagnosisRecord:
        """Wait for the channel to yield a record, within the timeout."""
        self._transition(RunState.POLLING)
        loop = asyncio.get_running_loop()
        started = loop.time()
        polls = 0

        while True:
            elapsed = loop.time() - started
            if elapsed > self.timeout_seconds:
                self._transition(RunState.TIMED_OUT)
                raise DiagnosisTimeout(
                    f"No diagnosis found within {self.timeout_seconds:g} seconds"
                )

            if not self.interceptor.is_alive():
                self._transition(RunState.PROXY_DIED)
                raise ProxyDied(
                    "Interception proxy process died unexpectedly",
                    remediation=self.interceptor.failure_hint(),
                )

            record = self.channel.read_latest()
            if record is not None:
                logger.debug(f"Diagnosis read after {polls} polls ({elapsed:.2f}s)")
                return record

            polls += 1
            await asyncio.sleep(self.poll_interval_seconds)

    def _transition(self, state: RunState) -> None:
        logger.debug(f"State: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _setup_signal_handlers(self) -> None:
        """Turn SIGINT/SIGTERM into cancellation of the running task."""
        try:
            loop = asyncio.get_running_loop()

            def _handle_signal(sig: int) -> None:
                if self._cleaning_up:
                    logger.info(f"Received signal {sig} during cleanup, ignoring")
                    return
                logger.info(f"Received signal {sig}, cleaning up...")
                if self._task is not None:
                    self._task.cancel()

            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, _handle_signal, sig)
                self._signals_installed.append(sig)
        except NotImplementedError:
            # Signal handlers not available on Windows
            logger.debug("Signal handlers not available on this platform")
        except (RuntimeError, ValueError) as e:
            # Not in the main thread
            logger.warning(f"Failed to set up signal handlers: {e}")

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        while self._signals_installed:
            loop.remove_signal_handler(self._signals_installed.pop())
