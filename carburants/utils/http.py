"""HTTP helpers for configuring :mod:`requests` sessions."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

_DEFAULT_RETRY_OPTIONS: dict[str, Any] = {
    "total": 0,
    "status_forcelist": (),
    "allowed_methods": ("GET",),
    "raise_on_status": False,
}

# Default timeout in seconds if none is provided
DEFAULT_TIMEOUT = 30

# Limit URL length to reduce DoS risk from extremely long inputs.
MAX_URL_LENGTH = 2048

# Block control characters and whitespace in URLs to prevent log injection
_UNSAFE_URL_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")

log = logging.getLogger(__name__)


class TimeoutHTTPAdapter(HTTPAdapter):
    """HTTPAdapter that enforces a default timeout."""

    def __init__(self, *args: Any, timeout: float | None = None, **kwargs: Any) -> None:
        self.timeout = timeout
        super().__init__(*args, **kwargs)

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().send(request, **kwargs)


def session_with_retries(
    user_agent: str,
    timeout: float = DEFAULT_TIMEOUT,
    headers: Mapping[str, str] | None = None,
    **retry_opts: Any,
) -> requests.Session:
    """Return a :class:`requests.Session` with a default timeout and retry policy.

    Transport retries are disabled unless ``retry_opts`` asks for them; the
    feed fetcher relies on its ordered attempt list instead.

    Args:
        user_agent: User-Agent header that should be sent with every request.
        timeout: Default timeout in seconds for requests.
        headers: Additional default headers.
        **retry_opts: Additional keyword arguments forwarded to
            :class:`urllib3.util.retry.Retry`.
    """

    options = {**_DEFAULT_RETRY_OPTIONS, **retry_opts}
    session = requests.Session()
    retry = Retry(**options)
    adapter = TimeoutHTTPAdapter(max_retries=retry, timeout=timeout)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": user_agent})
    if headers:
        session.headers.update(dict(headers))
    return session


def validate_http_url(url: str | None) -> str | None:
    """Ensure the given URL is valid and uses http or https.

    Returns the URL (stripped) if valid, or ``None`` if invalid/empty/wrong
    scheme, overly long, carrying embedded credentials or containing
    whitespace/control characters.
    """
    if not url:
        return None

    candidate = url.strip()
    if not candidate:
        return None

    if len(candidate) > MAX_URL_LENGTH:
        return None

    if _UNSAFE_URL_CHARS.search(candidate):
        return None

    try:
        parsed = urlparse(candidate)
    except ValueError:
        return None

    if parsed.scheme.lower() not in ("http", "https"):
        return None

    # Disallow embedded credentials to avoid leaking secrets via logs or proxies.
    if parsed.username or parsed.password:
        return None

    if not parsed.hostname:
        return None

    return candidate


def sanitize_url_for_error(url: str) -> str:
    """Return ``url`` without query string, truncated for log output."""

    try:
        parsed = urlparse(url)
    except ValueError:
        return "<invalid url>"
    cleaned = parsed._replace(query="", fragment="").geturl()
    if parsed.query:
        cleaned += "?***"
    if len(cleaned) > MAX_URL_LENGTH:
        cleaned = cleaned[:MAX_URL_LENGTH] + "...[TRUNCATED]"
    return cleaned


def fetch_content_safe(
    session: requests.Session,
    url: str,
    max_bytes: int = 50 * 1024 * 1024,
    timeout: float | None = None,
    **kwargs: Any,
) -> bytes:
    """Fetch URL content with a size limit to prevent DoS.

    Args:
        session: The requests session to use.
        url: The URL to fetch.
        max_bytes: Maximum allowed response body size in bytes.
        timeout: Request timeout in seconds.
        **kwargs: Additional arguments passed to session.get().

    Raises:
        ValueError: If URL is invalid, or Content-Length/body size exceeds max_bytes.
        requests.RequestException: For network errors and HTTP error statuses.
    """
    if not validate_http_url(url):
        raise ValueError(f"Unsafe or invalid URL: {sanitize_url_for_error(url)}")

    with session.get(url, stream=True, timeout=timeout, **kwargs) as r:
        r.raise_for_status()

        content_length = r.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > max_bytes:
            raise ValueError(f"Content-Length exceeds {max_bytes} bytes")

        chunks = []
        received = 0
        for chunk in r.iter_content(chunk_size=65536):
            if not chunk:
                continue
            chunks.append(chunk)
            received += len(chunk)
            if received > max_bytes:
                raise ValueError(f"Response too large (> {max_bytes} bytes)")
        return b"".join(chunks)
