"""End-to-end diagnosis runs with real child processes.

mitmdump and the claude CLI are replaced by executable stand-ins; every
other piece (generated addon script, correlator, marker channel, result
file, cleanup) is the production wiring from main.build_orchestrator.
"""

import asyncio
import json
import os
from pathlib import Path

import pytest

from toolsleuth.config import Settings
from toolsleuth.core.errors import DiagnosisTimeout, ProxyDied
from toolsleuth.core.models import RunState
from toolsleuth.core.orchestrator import DiagnosisOrchestrator
from toolsleuth.main import build_orchestrator
from toolsleuth.tests.adapters.standins import (
    child_pythonpath,
    write_fake_client,
    write_fake_mitmdump,
)

DRAFT_07 = "http://json-schema.org/draft-07/schema#"


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    ca_cert = tmp_path / "mitmproxy-ca-cert.pem"
    ca_cert.write_text("-----BEGIN CERTIFICATE-----\n")

    monkeypatch.setenv("PYTHONPATH", child_pythonpath())
    monkeypatch.setenv("FAKE_CLIENT_REPORT", str(tmp_path / "client-report.txt"))
    monkeypatch.delenv("HTTPS_PROXY", raising=False)
    monkeypatch.delenv("NODE_EXTRA_CA_CERTS", raising=False)

    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        mitmdump_command=str(write_fake_mitmdump(bin_dir)),
        client_command=str(write_fake_client(bin_dir)),
        ca_cert_path=str(ca_cert),
        work_dir=str(work_dir),
        proxy_port=18080,
        timeout_seconds=20,
        poll_interval_seconds=0.1,
        startup_grace_seconds=0.2,
        shutdown_grace_seconds=2,
    )


def assert_no_leftovers(orchestrator: DiagnosisOrchestrator, settings: Settings) -> None:
    assert orchestrator.state is RunState.DONE
    assert not orchestrator.interceptor.is_alive()
    assert not orchestrator.client.is_running()
    assert not settings.script_path.exists()
    assert not settings.proxy_log_path.exists()
    assert "HTTPS_PROXY" not in os.environ
    assert "NODE_EXTRA_CA_CERTS" not in os.environ


@pytest.mark.asyncio
async def test_problematic_tool_is_saved(settings: Settings, tmp_path: Path) -> None:
    orchestrator = build_orchestrator(settings)

    record = await orchestrator.run()

    assert record.tool_name == "B"
    saved = json.loads(settings.result_path.read_text())
    assert set(saved) == {"timestamp", "message", "tool_name", "tool_index", "schema_url"}
    assert saved["message"] == "Problematic Tool Found"
    assert saved["tool_name"] == "B"
    assert saved["tool_index"] == 1
    assert saved["schema_url"] == DRAFT_07

    proxy, ca_bundle, args = (tmp_path / "client-report.txt").read_text().splitlines()
    assert proxy == "http://127.0.0.1:18080"
    assert ca_bundle == str(Path(settings.ca_cert_path).resolve())
    assert args == "this is a test request"
    assert_no_leftovers(orchestrator, settings)


@pytest.mark.asyncio
async def test_out_of_range_index_is_saved(
    settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_MESSAGE", "tools.5.custom.input_schema: JSON schema is invalid")
    orchestrator = build_orchestrator(settings)

    await orchestrator.run()

    saved = json.loads(settings.result_path.read_text())
    assert saved["message"] == "Error: Invalid tool index 5 found in error message."
    assert "tool_name" not in saved
    assert_no_leftovers(orchestrator, settings)


@pytest.mark.asyncio
async def test_successful_request_times_out(
    settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A 200 response writes nothing, so the run ends in a timeout."""
    monkeypatch.setenv("FAKE_STATUS", "200")
    settings.timeout_seconds = 3
    orchestrator = build_orchestrator(settings)

    with pytest.raises(DiagnosisTimeout):
        await orchestrator.run()

    assert not settings.result_path.exists()
    assert_no_leftovers(orchestrator, settings)


@pytest.mark.asyncio
async def test_proxy_exit_is_reported(
    settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_STATUS", "200")
    monkeypatch.setenv("FAKE_LIFETIME", "0")
    monkeypatch.setenv("FAKE_DELAY", "1")
    orchestrator = build_orchestrator(settings)

    with pytest.raises(ProxyDied) as exc_info:
        await orchestrator.run()

    assert "proxy listening" in exc_info.value.remediation
    assert not settings.result_path.exists()
    assert_no_leftovers(orchestrator, settings)


@pytest.mark.asyncio
async def test_interruption_stops_children_and_keeps_old_result(
    settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_DELAY", "60")
    settings.result_path.write_text('{"message": "from an earlier run"}\n')
    orchestrator = build_orchestrator(settings)

    task = asyncio.create_task(orchestrator.run())
    for _ in range(200):
        if orchestrator.state is RunState.POLLING:
            break
        await asyncio.sleep(0.05)
    assert orchestrator.state is RunState.POLLING
    assert orchestrator.interceptor.is_alive()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert json.loads(settings.result_path.read_text()) == {
        "message": "from an earlier run"
    }
    assert_no_leftovers(orchestrator, settings)
