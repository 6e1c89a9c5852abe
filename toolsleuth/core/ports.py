"""Port interfaces for the toolsleuth diagnostic tool.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Diagnosis channel**
   - DiagnosisSinkPort: written by the interception layer
   - DiagnosisSourcePort: polled by the orchestrator

2. **Processes and environment**
   - PreflightPort: external programs and the interception certificate
   - InterceptorPort: the interception proxy child process
   - ClientPort: the chat client that sends the triggering request

3. **Results**
   - ResultSinkPort: persists and reports the final diagnosis
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path

from .models import DiagnosisRecord


# ============================================================================
# DIAGNOSIS CHANNEL
# ============================================================================


class DiagnosisSinkPort(ABC):
    """Port for publishing diagnosis records out of the interception layer.

    Implementations must keep each record atomic with respect to other
    output sharing the same destination.
    """

    @abstractmethod
    def publish(self, record: DiagnosisRecord) -> None:
        """Append one diagnosis record to the channel."""


class DiagnosisSourcePort(ABC):
    """Port for retrieving the authoritative diagnosis from the channel."""

    @abstractmethod
    def read_latest(self) -> DiagnosisRecord | None:
        """Return the most recent complete diagnosis record.

        Returns:
            The latest record, or None if none is complete yet. A record
            still being written counts as not yet available.
        """


# ============================================================================
# PROCESSES AND ENVIRONMENT
# ============================================================================


class PreflightPort(ABC):
    """Port for the checks that must pass before anything is spawned."""

    @abstractmethod
    def check_tools(self) -> None:
        """Verify required external programs are resolvable.

        Raises:
            PrerequisiteMissing: If any program cannot be found.
        """

    @abstractmethod
    def check_certificate(self) -> Path:
        """Verify the interception CA certificate exists.

        Returns:
            Path of the certificate to hand to the client.

        Raises:
            CertificateMissing: If the certificate has not been generated.
        """


class InterceptorPort(ABC):
    """Port for the interception proxy child process."""

    @abstractmethod
    def materialize_script(self) -> Path:
        """Write the proxy's addon script to disk and return its path."""

    @abstractmethod
    async def start(self) -> None:
        """Launch the proxy and wait until it is observed to be alive.

        Raises:
            ProxyStartFailure: If the proxy is not alive after its grace period.
        """

    @abstractmethod
    def is_alive(self) -> bool:
        """Return True while the proxy process is running."""

    @abstractmethod
    async def stop(self, grace_seconds: float) -> None:
        """Terminate the proxy, escalating to a kill after the grace period.

        Must be safe to call when the proxy was never started or already exited.
        """

    @abstractmethod
    def failure_hint(self) -> str:
        """Describe where to look when the proxy fails, for remediation text."""

    @abstractmethod
    def discard_artifacts(self) -> None:
        """Delete the generated script and the raw proxy log."""


class ClientPort(ABC):
    """Port for the opaque chat client being diagnosed."""

    @abstractmethod
    def launch(self, env: Mapping[str, str]) -> None:
        """Start the one-shot triggering request without waiting for it.

        Args:
            env: Complete environment for the client process, including
                proxy and trust-bundle configuration.
        """

    @abstractmethod
    def is_running(self) -> bool:
        """Return True while the client process is running."""

    @abstractmethod
    async def stop(self, grace_seconds: float) -> None:
        """Terminate the client if it is still running."""


# ============================================================================
# RESULTS
# ============================================================================


class ResultSinkPort(ABC):
    """Port for the terminal artifact of a run."""

    @abstractmethod
    async def persist(self, record: DiagnosisRecord) -> None:
        """Store or report the final diagnosis.

        Raises:
            OSError: If the result cannot be written.
        """
