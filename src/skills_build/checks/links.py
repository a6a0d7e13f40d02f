from __future__ import annotations

import logging
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable

from skills_build.errors import HttpError
from skills_build.http import METHOD_NOT_SUPPORTED, RATE_LIMITED, request_url, retry_delay
from skills_build.models import NetworkSettings, ParsedRule, UrlCheckResult, Violation

logger = logging.getLogger(__name__)

KIND = "network"

_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


class _Cursor:
    """Hands out each index exactly once across worker threads."""

    def __init__(self, size: int):
        self._size = size
        self._next = 0
        self._lock = threading.Lock()

    def claim(self) -> int | None:
        with self._lock:
            if self._next >= self._size:
                return None
            index = self._next
            self._next += 1
            return index


def collect_references(parsed_rules: Iterable[ParsedRule]) -> dict[str, set[str]]:
    """Map every outbound http(s) URL to the set of files referencing it."""
    references: dict[str, set[str]] = {}
    for parsed in parsed_rules:
        for url in parsed.rule.references:
            if not _HTTP_URL_RE.match(url):
                continue
            references.setdefault(url, set()).add(parsed.file_ref)
    return references


def check_url(
    url: str,
    settings: NetworkSettings,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> UrlCheckResult:
    last_error = "unknown error"

    for attempt in range(settings.retries + 1):
        try:
            response = request_url(
                url, "HEAD", timeout=settings.timeout_seconds, user_agent=settings.user_agent
            )
            if response.status in METHOD_NOT_SUPPORTED:
                response = request_url(
                    url, "GET", timeout=settings.timeout_seconds, user_agent=settings.user_agent
                )

            if response.status == RATE_LIMITED:
                return UrlCheckResult(
                    url=url,
                    ok=True,
                    status=response.status,
                    note="rate-limited (treated as reachable)",
                    attempts=attempt + 1,
                )
            if 200 <= response.status < 400:
                return UrlCheckResult(url=url, ok=True, status=response.status, attempts=attempt + 1)

            last_error = f"HTTP {response.status}"
        except HttpError as exc:
            last_error = str(exc)

        if attempt < settings.retries:
            sleep(retry_delay(settings, attempt))

    return UrlCheckResult(url=url, ok=False, note=last_error, attempts=settings.retries + 1)


def check_urls(
    urls: list[str],
    settings: NetworkSettings,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> list[UrlCheckResult]:
    """Check ``urls`` with a bounded pool; results come back in completion order."""
    results: list[UrlCheckResult] = []
    if not urls:
        return results

    cursor = _Cursor(len(urls))

    def worker() -> None:
        while True:
            index = cursor.claim()
            if index is None:
                return
            result = check_url(urls[index], settings, sleep=sleep)
            results.append(result)
            marker = "OK" if result.ok else "FAIL"
            detail = result.status if result.status is not None else result.note or "n/a"
            logger.info("%s %s (%s)", marker, result.url, detail)

    workers = min(settings.concurrency, len(urls))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(worker) for _ in range(workers)]
        for future in futures:
            future.result()

    return results


def check_links(
    references: dict[str, set[str]],
    settings: NetworkSettings,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[list[UrlCheckResult], list[Violation]]:
    urls = sorted(references)
    logger.info("Checking %d unique reference URLs", len(urls))
    results = check_urls(urls, settings, sleep=sleep)

    errors: list[Violation] = []
    for failure in sorted((item for item in results if not item.ok), key=lambda item: item.url):
        detail = failure.note or f"HTTP {failure.status}"
        for file in sorted(references.get(failure.url, ())):
            errors.append(
                Violation(file=file, message=f"Broken or unreachable reference {failure.url} ({detail})", kind=KIND)
            )
    return results, errors
