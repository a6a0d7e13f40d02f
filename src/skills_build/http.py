from __future__ import annotations

import os
import socket
import ssl
import time
from dataclasses import dataclass
from http.client import HTTPException
from typing import Callable
from urllib import error, request

import certifi

from skills_build.errors import HttpError
from skills_build.models import NetworkSettings

METHOD_NOT_SUPPORTED = {405, 501}
RATE_LIMITED = 429

_READ_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class HttpResponse:
    status: int
    headers: dict[str, str]
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def request_url(
    url: str,
    method: str = "GET",
    *,
    timeout: float = 15.0,
    user_agent: str = "skills-build/0.1",
    read_body: bool = False,
) -> HttpResponse:
    """Issue one request and return its final status, following redirects.

    Non-2xx statuses come back as responses. Transport failures, malformed
    responses and timeouts raise :class:`HttpError` so callers can retry
    them. ``timeout`` bounds each socket operation and also the whole body
    read, so a server trickling bytes cannot hold the request open.
    """
    deadline = time.monotonic() + timeout
    req = request.Request(url=url, headers={"User-Agent": user_agent, "Accept": "*/*"}, method=method)
    context = _build_ssl_context()
    try:
        with request.urlopen(req, timeout=timeout, context=context) as response:
            body = ""
            if read_body:
                charset = response.headers.get_content_charset() or "utf-8"
                body = _read_body(response, deadline, url, timeout).decode(charset, errors="replace")
            normalized_headers = {k.lower(): v for k, v in response.headers.items()}
            return HttpResponse(status=response.status, headers=normalized_headers, body=body)
    except error.HTTPError as exc:
        normalized_headers = {k.lower(): v for k, v in (exc.headers or {}).items()}
        exc.close()
        return HttpResponse(status=exc.code, headers=normalized_headers)
    except error.URLError as exc:
        raise HttpError(f"Failed request to {url}: {exc.reason}") from exc
    except (socket.timeout, TimeoutError) as exc:
        raise HttpError(f"Request to {url} timed out after {timeout}s") from exc
    except HTTPException as exc:
        raise HttpError(f"Malformed response from {url}: {exc!r}") from exc
    except (OSError, ValueError) as exc:
        raise HttpError(f"Failed request to {url}: {exc}") from exc


def _read_body(response, deadline: float, url: str, timeout: float) -> bytes:
    chunks: list[bytes] = []
    while True:
        chunk = response.read1(_READ_CHUNK_SIZE)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)
        if time.monotonic() > deadline:
            raise HttpError(f"Request to {url} timed out after {timeout}s")


def fetch_text(
    url: str,
    settings: NetworkSettings,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """GET ``url`` with the retry policy; raise :class:`HttpError` once retries run out."""
    last_error = "unknown error"
    for attempt in range(settings.retries + 1):
        try:
            response = request_url(
                url,
                "GET",
                timeout=settings.timeout_seconds,
                user_agent=settings.user_agent,
                read_body=True,
            )
            if response.ok:
                return response.body
            last_error = f"HTTP {response.status}"
        except HttpError as exc:
            last_error = str(exc)

        if attempt < settings.retries:
            sleep(retry_delay(settings, attempt))

    raise HttpError(f"Failed to fetch {url}: {last_error}")


def retry_delay(settings: NetworkSettings, attempt: int) -> float:
    return settings.backoff_seconds * (attempt + 1)


def _build_ssl_context() -> ssl.SSLContext:
    if _env_true("SKILLS_BUILD_INSECURE_SKIP_VERIFY"):
        return ssl._create_unverified_context()

    bundle = (
        os.getenv("SKILLS_BUILD_CA_BUNDLE")
        or os.getenv("SSL_CERT_FILE")
        or os.getenv("REQUESTS_CA_BUNDLE")
    )
    if bundle:
        return ssl.create_default_context(cafile=bundle)

    return ssl.create_default_context(cafile=certifi.where())


def _env_true(name: str) -> bool:
    value = (os.getenv(name) or "").strip().lower()
    return value in {"1", "true", "yes", "on"}
