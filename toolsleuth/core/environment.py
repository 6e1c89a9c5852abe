"""Proxy configuration handed to the diagnosed client.

The client is configured through two environment variables: one naming
the proxy address, one naming the extra CA bundle to trust. The values
are passed explicitly to the client process, and can also be applied to
this process's environment for the lifetime of a run, with the previous
values restored when the scope is released.
"""

import logging
import os
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PROXY_VAR = "HTTPS_PROXY"
DEFAULT_CA_BUNDLE_VAR = "NODE_EXTRA_CA_CERTS"


@dataclass(frozen=True)
class ProxyEnvironment:
    """Proxy address and trust bundle for one run."""

    proxy_url: str
    ca_bundle_path: Path
    proxy_var: str = DEFAULT_PROXY_VAR
    ca_bundle_var: str = DEFAULT_CA_BUNDLE_VAR

    def as_env(self) -> dict[str, str]:
        """Only the variables this run sets."""
        return {
            self.proxy_var: self.proxy_url,
            self.ca_bundle_var: str(self.ca_bundle_path),
        }

    def client_env(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Full environment for the client process."""
        env = dict(os.environ if base is None else base)
        env.update(self.as_env())
        return env

    @contextmanager
    def applied(
        self, environ: MutableMapping[str, str] | None = None
    ) -> Iterator[dict[str, str]]:
        """Set the proxy variables, restoring the previous values on exit.

        Variables that were unset before are removed again; variables that
        had a value get that value back.
        """
        target = os.environ if environ is None else environ
        variables = self.as_env()
        previous = {name: target.get(name) for name in variables}

        target.update(variables)
        logger.debug(f"Proxy environment applied: {variables}")
        try:
            yield variables
        finally:
            for name, value in previous.items():
                if value is None:
                    target.pop(name, None)
                else:
                    target[name] = value
            logger.debug("Proxy environment reverted")
