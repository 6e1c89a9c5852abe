"""Tests for the claude CLI client adapter."""

import asyncio
from pathlib import Path

import pytest

from toolsleuth.adapters.client.claude_cli import ClaudeCLIClient
from toolsleuth.tests.adapters.standins import write_fake_client


async def wait_for(path: Path, timeout: float = 10) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not path.exists():
        assert loop.time() < deadline, f"{path} never appeared"
        await asyncio.sleep(0.05)


def test_command_expands_home() -> None:
    client = ClaudeCLIClient()
    assert not client.command.startswith("~")
    assert client.command.endswith("/.claude/local/claude")


def test_not_running_before_launch() -> None:
    client = ClaudeCLIClient(command="claude")
    assert not client.is_running()
    assert client.pid is None


@pytest.mark.asyncio
async def test_launch_passes_prompt_and_environment(tmp_path: Path) -> None:
    report = tmp_path / "report.txt"
    client = ClaudeCLIClient(
        command=str(write_fake_client(tmp_path)), prompt="hello there"
    )

    client.launch(
        {
            "FAKE_CLIENT_REPORT": str(report),
            "HTTPS_PROXY": "http://127.0.0.1:9999",
            "NODE_EXTRA_CA_CERTS": "/certs/ca.pem",
        }
    )
    try:
        await wait_for(report)
        assert client.is_running()
        assert report.read_text().splitlines() == [
            "http://127.0.0.1:9999",
            "/certs/ca.pem",
            "hello there",
        ]
    finally:
        await client.stop(grace_seconds=2)

    assert not client.is_running()


@pytest.mark.asyncio
async def test_stop_is_idempotent(tmp_path: Path) -> None:
    client = ClaudeCLIClient(command=str(write_fake_client(tmp_path)))
    client.launch({"FAKE_CLIENT_REPORT": str(tmp_path / "report.txt")})

    await client.stop(grace_seconds=2)
    await client.stop(grace_seconds=2)

    assert not client.is_running()
