"""Tests for core.sandbox."""

import subprocess
import tempfile
from unittest.mock import MagicMock, patch

import pytest

from core.sandbox import run_in_sandbox


@patch("core.sandbox.subprocess.run")
def test_allowed_command(mock_run):
    mock_run.return_value = MagicMock(stdout="10.8.2\n", stderr="", returncode=0)
    with tempfile.TemporaryDirectory() as tmpdir:
        stdout, stderr, rc = run_in_sandbox(["npm", "--version"], cwd=tmpdir)
    assert rc == 0
    assert stdout.startswith("10.")
    assert mock_run.call_args[0][0] == ["npm", "--version"]


def test_disallowed_command():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ValueError, match="not in allowlist"):
            run_in_sandbox(["rm", "-rf", "/"], cwd=tmpdir)


def test_disallowed_bash():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ValueError, match="not in allowlist"):
            run_in_sandbox(["bash", "-c", "echo pwned"], cwd=tmpdir)


def test_invalid_cwd():
    with pytest.raises(ValueError, match="does not exist"):
        run_in_sandbox(["npm", "--version"], cwd="/nonexistent/path")


def test_empty_command():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ValueError, match="non-empty list"):
            run_in_sandbox([], cwd=tmpdir)


@patch("core.sandbox.subprocess.run")
def test_timeout(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd=["npm", "run", "build"], timeout=1)
    with tempfile.TemporaryDirectory() as tmpdir:
        stdout, stderr, rc = run_in_sandbox(["npm", "run", "build"], cwd=tmpdir, timeout=1)
    assert rc == -1
    assert "timed out" in stderr.lower()


@patch("core.sandbox.subprocess.run")
def test_command_not_found(mock_run):
    mock_run.side_effect = FileNotFoundError()
    with tempfile.TemporaryDirectory() as tmpdir:
        stdout, stderr, rc = run_in_sandbox(["node", "-v"], cwd=tmpdir)
    assert rc == -1
    assert "not found" in stderr.lower()


@patch("core.sandbox.subprocess.run")
def test_env_drops_api_key_and_adds_extras(mock_run, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)
    with tempfile.TemporaryDirectory() as tmpdir:
        run_in_sandbox(["npm", "run", "build"], cwd=tmpdir, env={"CI": "1"})
    env = mock_run.call_args[1]["env"]
    assert "ANTHROPIC_API_KEY" not in env
    assert env["CI"] == "1"
