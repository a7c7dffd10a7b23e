"""Pytest configuration and fixtures for gateway tests."""

import sys
import textwrap
from pathlib import Path
from typing import Callable, List

import pytest


@pytest.fixture
def engine_script(tmp_path: Path) -> Callable[[str], List[str]]:
    """Write a throwaway engine script and return the command that runs it."""

    counter = {"n": 0}

    def _make(body: str) -> List[str]:
        counter["n"] += 1
        script = tmp_path / f"engine_{counter['n']}.py"
        script.write_text(textwrap.dedent(body), encoding="utf-8")
        return [sys.executable, str(script)]

    return _make


@pytest.fixture
def missing_command(tmp_path: Path) -> List[str]:
    """A command whose program does not exist."""
    return [str(tmp_path / "no-such-engine"), "dist/get-world-state.js"]


@pytest.fixture(autouse=True)
def clean_gateway_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for name in (
        "VIBEMASTER_ENGINE_COMMAND",
        "VIBEMASTER_ENGINE_CWD",
        "VIBEMASTER_ENGINE_TIMEOUT",
        "VIBEMASTER_ENGINE_URL",
        "VIBEMASTER_FALLBACK_POLICY",
        "VIBEMASTER_VALIDATE_OUTPUT",
        "VIBEMASTER_SIMULATION_COMMAND",
        "VIBEMASTER_API_PORT",
        "PRODUCTION",
        "ALLOWED_ORIGINS",
        "VIBEMASTER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
