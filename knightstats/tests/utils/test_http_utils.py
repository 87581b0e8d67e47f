# ==============================================================================
# test_http_utils.py  –  Retry loop + status mapping
# ==============================================================================

from unittest.mock import MagicMock, patch

import pytest
import requests

from knightstats.errors import ExternalApiError, InvalidUsernameError, RateLimitError
from knightstats.utils.http_utils import build_session, get_with_retry, raise_for_platform


def _response(status, headers=None):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.ok = status < 400
    resp.headers = headers or {}
    return resp


def test_build_session_sets_token():
    session = build_session(token="abc")
    assert session.headers["Authorization"] == "Bearer abc"
    assert "knightstats" in session.headers["User-Agent"]


@patch("knightstats.utils.http_utils.time.sleep")
def test_retries_server_errors_then_succeeds(mock_sleep):
    session = MagicMock()
    session.get.side_effect = [_response(502), _response(200)]
    resp = get_with_retry(session, "https://x.test", "lichess", pause=0)
    assert resp.status_code == 200
    assert session.get.call_count == 2
    mock_sleep.assert_called_once_with(0)


@patch("knightstats.utils.http_utils.time.sleep")
def test_client_errors_are_not_retried(mock_sleep):
    session = MagicMock()
    session.get.return_value = _response(429)
    resp = get_with_retry(session, "https://x.test", "lichess")
    assert resp.status_code == 429
    assert session.get.call_count == 1
    mock_sleep.assert_not_called()


@patch("knightstats.utils.http_utils.time.sleep")
def test_persistent_connection_failure_raises(mock_sleep):
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("down")
    with pytest.raises(ExternalApiError):
        get_with_retry(session, "https://x.test", "chesscom", attempts=2)
    assert session.get.call_count == 2


def test_raise_for_platform_mapping():
    raise_for_platform(_response(200), "chesscom")
    with pytest.raises(InvalidUsernameError):
        raise_for_platform(_response(404), "chesscom", "ghost")
    with pytest.raises(RateLimitError) as info:
        raise_for_platform(_response(429, {"Retry-After": "30"}), "lichess")
    assert info.value.retry_after == 30
    with pytest.raises(ExternalApiError):
        raise_for_platform(_response(500), "lichess")
