from __future__ import annotations

import logging
import time
from typing import Callable

from skills_build import http
from skills_build.checks.patterns import compile_regex
from skills_build.errors import HttpError, RegistryError
from skills_build.models import NetworkSettings, ReleaseWatchCheck, ReleaseWatchResult, Violation
from skills_build.versions import compare_versions, latest_version, parse_version

logger = logging.getLogger(__name__)

OK = "ok"
DRIFT_FORWARD = "drift-forward"
DRIFT_BACKWARD = "drift-backward"
NO_VERSIONS = "no-versions"
FETCH_FAILED = "fetch-failed"


def extract_versions(content: str, pattern: str) -> list[str]:
    """Unique strict ``major.minor.patch`` matches of ``pattern``, in first-seen order."""
    regex = compile_regex(pattern, None, "versionPattern")
    unique = dict.fromkeys(match.group(0) for match in regex.finditer(content))
    return [candidate for candidate in unique if parse_version(candidate) is not None]


def evaluate_release(check: ReleaseWatchCheck, content: str) -> ReleaseWatchResult:
    expected = parse_version(check.expected_latest)
    if expected is None:
        raise RegistryError(f"[{check.id}] Invalid expectedLatest semver: {check.expected_latest}")

    candidates = extract_versions(content, check.version_pattern)
    observed = latest_version(candidates)
    if observed is None:
        return ReleaseWatchResult(
            id=check.id,
            url=check.url,
            status=NO_VERSIONS,
            message=f"[{check.id}] No versions matched pattern /{check.version_pattern}/ on {check.url}",
            expected=str(expected),
        )

    cmp = compare_versions(observed, expected)
    if cmp > 0:
        status = DRIFT_FORWARD
        message = (
            f"[{check.id}] Newer release detected ({observed} > {expected}). "
            "Update skills/audit baselines."
        )
    elif cmp < 0:
        status = DRIFT_BACKWARD
        message = (
            f"[{check.id}] Expected release ({expected}) not found as latest; observed {observed}. "
            "Reconcile registry assumptions."
        )
    else:
        status = OK
        message = f"[{check.id}] observed latest={observed}, expected latest={expected}"

    return ReleaseWatchResult(
        id=check.id,
        url=check.url,
        status=status,
        message=message,
        observed=str(observed),
        expected=str(expected),
    )


def run_release_watch(
    checks: list[ReleaseWatchCheck],
    settings: NetworkSettings,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[list[ReleaseWatchResult], list[Violation]]:
    results: list[ReleaseWatchResult] = []
    errors: list[Violation] = []

    if not checks:
        logger.warning("No release-watch checks configured.")
        return results, errors

    for check in checks:
        try:
            content = http.fetch_text(check.url, settings, sleep=sleep)
        except HttpError as exc:
            result = ReleaseWatchResult(
                id=check.id,
                url=check.url,
                status=FETCH_FAILED,
                message=f"[{check.id}] {exc}",
                expected=check.expected_latest,
            )
            results.append(result)
            errors.append(Violation(file=check.url, message=result.message, kind="network", rule_id=check.id))
            continue

        result = evaluate_release(check, content)
        logger.info(
            "CHECK %s: observed latest=%s, expected latest=%s (%s)",
            check.id,
            result.observed,
            result.expected,
            check.url,
        )
        results.append(result)
        if not result.ok:
            errors.append(Violation(file=check.url, message=result.message, kind="drift", rule_id=check.id))

    return results, errors
