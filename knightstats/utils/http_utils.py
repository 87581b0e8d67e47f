# ==============================================================================
# http_utils.py  –  Shared requests.Session + status → error mapping
#
# Features:
#   ✔ One session per client with User-Agent / bearer token headers
#   ✔ Bounded retry on 5xx + connection errors (no retry on 429)
#   ✔ Uniform mapping of 404 / 429 / other failures onto app errors
# ==============================================================================

from __future__ import annotations

import os
import time
from typing import Any, Dict, Final, Optional

import requests

from knightstats.errors import ExternalApiError, InvalidUsernameError, RateLimitError
from knightstats.utils.logging_utils import setup_logger

LOGGER = setup_logger("http_utils")

HTTP_TIMEOUT: Final[float] = float(os.getenv("HTTP_TIMEOUT", 30))  # seconds
MAX_ATTEMPTS: Final[int] = int(os.getenv("HTTP_MAX_ATTEMPTS", 3))
RETRY_PAUSE: Final[float] = float(os.getenv("HTTP_RETRY_PAUSE", 2))  # seconds
USER_AGENT: Final[str] = os.getenv(
    "USER_AGENT", "knightstats/0.1 (+https://github.com/knightstats)"
)


def build_session(
    token: Optional[str] = None, headers: Optional[Dict[str, str]] = None
) -> requests.Session:
    """Return a session carrying the default headers (and token, if any)."""
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    if token:
        session.headers["Authorization"] = f"Bearer {token}"
    if headers:
        session.headers.update(headers)
    return session


def get_with_retry(
    session: requests.Session,
    url: str,
    source: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    stream: bool = False,
    timeout: float = HTTP_TIMEOUT,
    attempts: int = MAX_ATTEMPTS,
    pause: float = RETRY_PAUSE,
) -> requests.Response:
    """
    GET ``url`` retrying server errors and dropped connections.

    Client errors (4xx, including 429) are returned straight away so the
    caller can map them; the last 5xx response is returned once attempts
    run out. Connection failures that persist raise `ExternalApiError`.
    """
    last_exc: Optional[requests.RequestException] = None

    for attempt in range(1, attempts + 1):
        try:
            resp = session.get(
                url, params=params, headers=headers, stream=stream, timeout=timeout
            )
        except requests.RequestException as exc:
            last_exc = exc
            LOGGER.warning(
                "%s request to %s failed (%s/%s) – %s", source, url, attempt, attempts, exc
            )
        else:
            if resp.status_code < 500 or attempt == attempts:
                return resp
            LOGGER.warning(
                "%s returned %s for %s (%s/%s) – retrying in %s s",
                source,
                resp.status_code,
                url,
                attempt,
                attempts,
                pause,
            )
        if attempt < attempts:
            time.sleep(pause)

    raise ExternalApiError(source, last_exc)


def _retry_after(resp: requests.Response) -> Optional[int]:
    value = resp.headers.get("Retry-After")
    if value and value.strip().isdigit():
        return int(value.strip())
    return None


def raise_for_platform(
    resp: requests.Response, source: str, username: Optional[str] = None
) -> None:
    """
    Map a non-2xx response onto the app error hierarchy.

    404 → InvalidUsernameError (when a username is known), 429 →
    RateLimitError, anything else → ExternalApiError.
    """
    if resp.ok:
        return
    if resp.status_code == 404 and username is not None:
        raise InvalidUsernameError(source, username)
    if resp.status_code == 429:
        raise RateLimitError(source, _retry_after(resp))
    raise ExternalApiError(source, RuntimeError(f"HTTP {resp.status_code}"))
