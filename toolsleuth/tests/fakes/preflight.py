"""Fake PreflightPort implementation for testing."""

from pathlib import Path

from toolsleuth.core.errors import CertificateMissing, PrerequisiteMissing
from toolsleuth.core.ports import PreflightPort


class FakePreflightPort(PreflightPort):
    """Pre-flight checks with configurable outcomes."""

    def __init__(self, ca_cert_path: Path | None = None) -> None:
        self.ca_cert_path = ca_cert_path or Path("/tmp/fake-ca.pem")
        self.missing_program: str | None = None
        self.certificate_missing = False
        self.tools_checked = False
        self.certificate_checked = False

    def check_tools(self) -> None:
        self.tools_checked = True
        if self.missing_program is not None:
            raise PrerequisiteMissing(f"{self.missing_program} is not installed")

    def check_certificate(self) -> Path:
        self.certificate_checked = True
        if self.certificate_missing:
            raise CertificateMissing(f"certificate not found at {self.ca_cert_path}")
        return self.ca_cert_path
