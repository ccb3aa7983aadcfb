"""Pytest configuration and shared fixtures."""

import os

import pytest

from chat_runtime.config import ENV_PREFIX


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolate_runtime_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CHAT_RUNTIME_* and OPENAI_API_KEY from the host out of tests."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX) or key == "OPENAI_API_KEY":
            monkeypatch.delenv(key, raising=False)
