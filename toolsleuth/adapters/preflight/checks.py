"""Pre-flight checks run before any process is spawned."""

import logging
import os
import shutil
from collections.abc import Mapping
from pathlib import Path

from toolsleuth.core.errors import CertificateMissing, PrerequisiteMissing
from toolsleuth.core.ports import PreflightPort

logger = logging.getLogger(__name__)

DEFAULT_CA_CERT = "~/.mitmproxy/mitmproxy-ca-cert.pem"


class PreflightChecker(PreflightPort):
    """Checks programs on PATH and the mitmproxy CA certificate."""

    def __init__(
        self,
        programs: Mapping[str, str],
        ca_cert_path: str | Path = DEFAULT_CA_CERT,
    ):
        """Initialize the checker.

        Args:
            programs: Executable name or path mapped to an install hint,
                e.g. ``{"mitmdump": "Please install mitmproxy."}``.
            ca_cert_path: Location of the interception CA certificate.
        """
        self.programs = dict(programs)
        self.ca_cert_path = Path(os.path.expanduser(str(ca_cert_path)))

    def check_tools(self) -> None:
        for program, hint in self.programs.items():
            resolved = shutil.which(os.path.expanduser(program))
            if resolved is None:
                raise PrerequisiteMissing(
                    f"{program} is not installed or not executable",
                    remediation=hint or None,
                )
            logger.debug(f"Found {program} at {resolved}")

    def check_certificate(self) -> Path:
        if not self.ca_cert_path.is_file():
            raise CertificateMissing(
                f"mitmproxy CA certificate not found at {self.ca_cert_path}"
            )
        return self.ca_cert_path.resolve()

    def report(self) -> list[tuple[str, bool, str]]:
        """Run every check without stopping at the first failure.

        Returns:
            (check name, passed, detail) for each program and the certificate.
        """
        results: list[tuple[str, bool, str]] = []
        for program, hint in self.programs.items():
            resolved = shutil.which(os.path.expanduser(program))
            if resolved is None:
                results.append((program, False, hint))
            else:
                results.append((program, True, resolved))

        try:
            path = self.check_certificate()
            results.append(("CA certificate", True, str(path)))
        except CertificateMissing as e:
            results.append(("CA certificate", False, f"{e}. {e.remediation}"))
        return results
