"""Error types for a diagnosis run.

Fatal errors abort the run after cleanup and map to distinct process
exit codes. ExchangeParseError is local to one intercepted exchange and
never aborts anything.
"""


class ToolsleuthError(Exception):
    """Base class for all toolsleuth errors."""

    exit_code = 1
    remediation = ""

    def __init__(self, message: str, remediation: str | None = None):
        super().__init__(message)
        if remediation is not None:
            self.remediation = remediation


class PrerequisiteMissing(ToolsleuthError):
    """A required external program is not on the execution path."""

    exit_code = 2
    remediation = "Install the missing program and make sure it is on PATH."


class CertificateMissing(ToolsleuthError):
    """The interception CA certificate has not been generated yet."""

    exit_code = 3
    remediation = (
        "Run 'mitmproxy' or 'mitmdump' once manually to generate the "
        "certificates, then try again."
    )


class ProxyStartFailure(ToolsleuthError):
    """The interception proxy exited during its startup grace period."""

    exit_code = 4


class DiagnosisTimeout(ToolsleuthError):
    """No diagnosis appeared within the bounded wait."""

    exit_code = 5
    remediation = (
        "Check that the client actually sends a request through the proxy, "
        "or raise the timeout."
    )


class ProxyDied(ToolsleuthError):
    """The interception proxy exited while the run was polling."""

    exit_code = 6


class ExchangeParseError(ToolsleuthError):
    """A request or response body of one exchange could not be parsed."""


__all__ = [
    "CertificateMissing",
    "DiagnosisTimeout",
    "ExchangeParseError",
    "PrerequisiteMissing",
    "ProxyDied",
    "ProxyStartFailure",
    "ToolsleuthError",
]
