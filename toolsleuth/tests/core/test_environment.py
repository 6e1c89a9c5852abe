"""Tests for the scoped proxy environment."""

from pathlib import Path

import pytest

from toolsleuth.core.environment import ProxyEnvironment


@pytest.fixture
def environment() -> ProxyEnvironment:
    return ProxyEnvironment(
        proxy_url="http://127.0.0.1:8080",
        ca_bundle_path=Path("/home/user/.mitmproxy/mitmproxy-ca-cert.pem"),
    )


def test_client_env_adds_proxy_variables(environment: ProxyEnvironment) -> None:
    env = environment.client_env({"PATH": "/usr/bin"})
    assert env == {
        "PATH": "/usr/bin",
        "HTTPS_PROXY": "http://127.0.0.1:8080",
        "NODE_EXTRA_CA_CERTS": "/home/user/.mitmproxy/mitmproxy-ca-cert.pem",
    }


def test_applied_unsets_variables_that_were_unset(environment: ProxyEnvironment) -> None:
    environ: dict[str, str] = {"PATH": "/usr/bin"}

    with environment.applied(environ):
        assert environ["HTTPS_PROXY"] == "http://127.0.0.1:8080"
        assert "NODE_EXTRA_CA_CERTS" in environ

    assert environ == {"PATH": "/usr/bin"}


def test_applied_restores_previous_values(environment: ProxyEnvironment) -> None:
    environ = {"HTTPS_PROXY": "http://corporate:3128"}

    with environment.applied(environ):
        assert environ["HTTPS_PROXY"] == "http://127.0.0.1:8080"

    assert environ == {"HTTPS_PROXY": "http://corporate:3128"}


def test_applied_reverts_on_exception(environment: ProxyEnvironment) -> None:
    environ: dict[str, str] = {}

    with pytest.raises(RuntimeError):
        with environment.applied(environ):
            raise RuntimeError("boom")

    assert environ == {}


def test_custom_variable_names() -> None:
    environment = ProxyEnvironment(
        proxy_url="http://localhost:9090",
        ca_bundle_path=Path("/ca.pem"),
        proxy_var="HTTP_PROXY",
        ca_bundle_var="SSL_CERT_FILE",
    )
    assert environment.as_env() == {
        "HTTP_PROXY": "http://localhost:9090",
        "SSL_CERT_FILE": "/ca.pem",
    }
