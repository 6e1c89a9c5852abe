"""Tests for settings loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from toolsleuth.config import Settings, load_settings


def make_settings(**kwargs: object) -> Settings:
    return Settings(_env_file=None, **kwargs)  # type: ignore[arg-type]


def test_defaults() -> None:
    with patch.dict(os.environ, {}, clear=True):
        settings = make_settings()

    assert settings.client_command == "~/.claude/local/claude"
    assert settings.proxy_url == "http://127.0.0.1:8080"
    assert settings.target_url == "api.anthropic.com/v1/messages"
    assert settings.error_types == ["invalid_request_error"]
    assert settings.start_marker == "--- CLAUDE_TOOL_DIAGNOSIS_START ---"
    assert settings.end_marker == "--- CLAUDE_TOOL_DIAGNOSIS_END ---"
    assert settings.timeout_seconds == 60
    assert settings.proxy_env_var == "HTTPS_PROXY"
    assert settings.ca_bundle_env_var == "NODE_EXTRA_CA_CERTS"


def test_environment_overrides() -> None:
    env = {
        "TOOLSLEUTH_TIMEOUT_SECONDS": "15",
        "TOOLSLEUTH_PROXY_PORT": "9090",
        "TOOLSLEUTH_ERROR_TYPES": '["invalid_request_error", "schema_error"]',
    }
    with patch.dict(os.environ, env, clear=True):
        settings = make_settings()

    assert settings.timeout_seconds == 15
    assert settings.proxy_url == "http://127.0.0.1:9090"
    assert settings.error_types == ["invalid_request_error", "schema_error"]


def test_unprefixed_proxy_variables_are_ignored() -> None:
    with patch.dict(os.environ, {"HTTPS_PROXY": "http://corp:3128"}, clear=True):
        settings = make_settings()
    assert settings.proxy_url == "http://127.0.0.1:8080"


def test_paths_derive_from_work_dir(tmp_path: Path) -> None:
    settings = make_settings(work_dir=str(tmp_path))

    assert settings.script_path == tmp_path.resolve() / "toolsleuth_addon.py"
    assert settings.proxy_log_path == tmp_path.resolve() / "mitmproxy.log"
    assert settings.result_path == tmp_path.resolve() / "diagnosis_results.json"


def test_absolute_result_file_is_kept(tmp_path: Path) -> None:
    result = tmp_path / "elsewhere" / "out.json"
    settings = make_settings(work_dir="/somewhere", result_file=str(result))
    assert settings.result_path == result


@pytest.mark.parametrize(
    "field,value",
    [
        ("timeout_seconds", 0),
        ("poll_interval_seconds", -1),
        ("startup_grace_seconds", -0.5),
        ("proxy_port", 70000),
        ("error_types", []),
        ("start_marker", "   "),
        ("log_level", "VERBOSE"),
    ],
)
def test_invalid_values_are_rejected(field: str, value: object) -> None:
    with pytest.raises(ValidationError):
        make_settings(**{field: value})


def test_load_settings_skips_unset_overrides(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("TOOLSLEUTH_TIMEOUT_SECONDS=30\nTOOLSLEUTH_PROXY_PORT=8181\n")

    with patch.dict(os.environ, {}, clear=True):
        settings = load_settings(str(env_file), timeout_seconds=None, proxy_port=9000)

    assert settings.timeout_seconds == 30
    assert settings.proxy_port == 9000
