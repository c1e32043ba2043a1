from unittest.mock import AsyncMock, patch

import httpx
import pytest

from core.infrastructure import http_client
from core.infrastructure.http_client import backoff_delay, http_request

URL = "https://shop.example.com/trail"


@pytest.fixture
def install_transport():
    def install(handler):
        http_client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    yield install
    http_client._client = None


@pytest.mark.asyncio
async def test_retries_throttled_request(install_transport):
    statuses = iter([429, 200])
    install_transport(lambda request: httpx.Response(next(statuses), text="ok"))

    with patch("core.infrastructure.http_client.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        response = await http_request("GET", URL, max_attempts=2, base_delay=1.0)

    assert response.status_code == 200
    mock_sleep.assert_awaited_once()


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(install_transport):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404)

    install_transport(handler)

    with pytest.raises(httpx.HTTPStatusError):
        await http_request("GET", URL)

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_uninitialized_client():
    http_client._client = None

    with pytest.raises(RuntimeError, match="not initialized"):
        await http_request("GET", URL)


def test_retry_after_header_wins():
    response = httpx.Response(429, headers={"Retry-After": "7"})

    assert backoff_delay(0, 2.0, response) == 7.0
    assert backoff_delay(0, 2.0, httpx.Response(429, headers={"Retry-After": "600"})) == 30.0


def test_backoff_grows_with_attempts():
    assert 2.0 <= backoff_delay(0, 2.0) <= 2.5
    assert 8.0 <= backoff_delay(2, 2.0) <= 10.0
