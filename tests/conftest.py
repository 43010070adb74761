import pytest

from helpers import call_app


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _no_env_keys(monkeypatch):
    """Keep signing keys from the developer's shell out of the tests."""
    monkeypatch.delenv("COOKIE_SESSION_KEYS", raising=False)
    monkeypatch.delenv("COOKIE_SESSION_SECRET", raising=False)


@pytest.fixture
def call():
    return call_app
