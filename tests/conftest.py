"""Pytest bootstrap configuration."""
import httpx
import pytest

from core.config import APIClientSettings, SessionSettings, Settings
from infrastructure.external.api_clients import create_admin_client
from tests.fakes import BASE_URL, FakeBackend, StubGateway


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        api=APIClientSettings(base_url=BASE_URL, timeout=5.0),
        session=SessionSettings(
            proactive_refresh_interval_seconds=3600,
            logout_timeout_seconds=0.2,
        ),
    )


@pytest.fixture
async def admin_client(backend, test_settings):
    """Fully wired client talking to the fake backend."""
    client = create_admin_client(test_settings, transport=httpx.MockTransport(backend.handler))
    yield client
    await client.aclose()


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()
