"""Unit tests for HTTP client."""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from kv_jobs.errors import AuthTokenError, RemoteHttpError
from kv_jobs.http_client import QueueHttpClient


def _mock_response(status, json_data=None, text=""):
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)
    return resp


def _session(mock_session_cls):
    # session.request is called synchronously and used as "async with"
    mock_session_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    session = mock_session_cls.return_value.__aenter__.return_value
    session.request = MagicMock()
    session.request.return_value.__aexit__ = AsyncMock(return_value=False)
    return session


@pytest.mark.asyncio
async def test_dispatch_success():
    """Test successful job dispatch via HTTP."""
    client = QueueHttpClient("https://admin.example.com/", auth_token="token")

    with patch("aiohttp.ClientSession") as mock_session:
        session = _session(mock_session)
        session.request.return_value.__aenter__.return_value = _mock_response(
            200, {"job_id": "job_abc"}
        )

        result = await client.dispatch(
            "email", {"to": "a@b.com"}, queue="high", retries=1
        )

    assert result == "job_abc"
    args, kwargs = session.request.call_args
    assert args == ("POST", "https://admin.example.com/queue/dispatch")
    assert kwargs["json"] == {
        "type": "email",
        "payload": {"to": "a@b.com"},
        "delay": 0,
        "queue": "high",
        "retries": 1,
    }
    assert kwargs["headers"]["X-Kv-Jobs-Token"] == "token"


@pytest.mark.asyncio
async def test_dispatch_http_error():
    """Test that HTTP errors raise RemoteHttpError."""
    client = QueueHttpClient("https://admin.example.com")

    with patch("aiohttp.ClientSession") as mock_session:
        _session(mock_session).request.return_value.__aenter__.return_value = (
            _mock_response(400, text="Delay must be non-negative")
        )

        with pytest.raises(RemoteHttpError) as exc_info:
            await client.dispatch("email", delay=-1)

    assert exc_info.value.status_code == 400
    assert exc_info.value.response_body == "Delay must be non-negative"


@pytest.mark.asyncio
async def test_dispatch_network_error():
    """Test that network errors raise RemoteHttpError."""
    client = QueueHttpClient("https://admin.example.com")

    with patch("aiohttp.ClientSession") as mock_session:
        _session(mock_session).request.side_effect = aiohttp.ClientError(
            "Connection failed"
        )

        with pytest.raises(RemoteHttpError) as exc_info:
            await client.dispatch("email")

    assert exc_info.value.status_code == 0


@pytest.mark.asyncio
async def test_get_job_not_found():
    client = QueueHttpClient("https://admin.example.com")

    with patch("aiohttp.ClientSession") as mock_session:
        _session(mock_session).request.return_value.__aenter__.return_value = (
            _mock_response(404, text="not found")
        )

        with pytest.raises(RemoteHttpError) as exc_info:
            await client.get_job("job_missing")

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_list_failed_passes_limit():
    client = QueueHttpClient("https://admin.example.com")

    with patch("aiohttp.ClientSession") as mock_session:
        session = _session(mock_session)
        session.request.return_value.__aenter__.return_value = _mock_response(
            200, [{"id": "job_1"}]
        )

        result = await client.list_failed(limit=5)

    assert result == [{"id": "job_1"}]
    assert session.request.call_args[1]["params"] == {"limit": 5}


@pytest.mark.asyncio
async def test_retry_job_conflict_returns_false():
    client = QueueHttpClient("https://admin.example.com")

    with patch("aiohttp.ClientSession") as mock_session:
        _session(mock_session).request.return_value.__aenter__.return_value = (
            _mock_response(409, text="not failed")
        )

        assert await client.retry_job("job_1") is False


@pytest.mark.asyncio
async def test_cancel_job_success():
    client = QueueHttpClient("https://admin.example.com")

    with patch("aiohttp.ClientSession") as mock_session:
        _session(mock_session).request.return_value.__aenter__.return_value = (
            _mock_response(200, {"success": True})
        )

        assert await client.cancel_job("job_1") is True


@pytest.mark.asyncio
async def test_clear_queues_returns_count():
    client = QueueHttpClient("https://admin.example.com")

    with patch("aiohttp.ClientSession") as mock_session:
        session = _session(mock_session)
        session.request.return_value.__aenter__.return_value = _mock_response(
            200, {"success": True, "count": 4}
        )

        assert await client.clear_queues() == 4

    assert session.request.call_args[0][0] == "DELETE"


@pytest.mark.asyncio
async def test_rejected_token_raises_auth_error():
    client = QueueHttpClient("https://admin.example.com", auth_token="wrong")

    with patch("aiohttp.ClientSession") as mock_session:
        _session(mock_session).request.return_value.__aenter__.return_value = (
            _mock_response(401, text="Invalid or missing auth token")
        )

        with pytest.raises(AuthTokenError):
            await client.retry_failed()


@pytest.mark.asyncio
async def test_get_worker_status():
    client = QueueHttpClient("https://admin.example.com")

    with patch("aiohttp.ClientSession") as mock_session:
        session = _session(mock_session)
        session.request.return_value.__aenter__.return_value = _mock_response(
            200, {"running": False, "queue": "default"}
        )

        assert await client.get_worker_status() == {"running": False, "queue": "default"}

    assert session.request.call_args[0] == (
        "GET",
        "https://admin.example.com/queue/worker",
    )
