from __future__ import annotations

import re
from dataclasses import dataclass

from skills_build.errors import RegistryError
from skills_build.models import PatternRule, Violation

KIND = "content"

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "g": 0,
    "u": 0,
}


@dataclass(frozen=True)
class CompiledPattern:
    regex: re.Pattern[str]
    message: str


def compile_regex(pattern: str, flags: str | None, scope: str) -> re.Pattern[str]:
    value = 0
    for flag in flags or "":
        if flag not in _FLAG_MAP:
            raise RegistryError(f"Invalid regex flag in {scope}: {flag!r} (/{pattern}/{flags})")
        value |= _FLAG_MAP[flag]
    try:
        return re.compile(pattern, value)
    except re.error as exc:
        raise RegistryError(f"Invalid regex in {scope}: /{pattern}/{flags or ''} ({exc})") from exc


def compile_pattern(rule: PatternRule, scope: str) -> CompiledPattern:
    return CompiledPattern(regex=compile_regex(rule.pattern, rule.flags, scope), message=rule.message)


def run_pattern_checks(
    file: str,
    content: str,
    requirements: tuple[PatternRule, ...],
    prohibitions: tuple[PatternRule, ...],
    scope: str,
) -> list[Violation]:
    """A requirement fails when its pattern is absent; a prohibition fails when present."""
    errors: list[Violation] = []

    for index, requirement in enumerate(requirements):
        compiled = compile_pattern(requirement, f"{scope}.requirements[{index}]")
        if not compiled.regex.search(content):
            errors.append(Violation(file=file, message=compiled.message, kind=KIND))

    for index, prohibition in enumerate(prohibitions):
        compiled = compile_pattern(prohibition, f"{scope}.prohibitions[{index}]")
        if compiled.regex.search(content):
            errors.append(Violation(file=file, message=compiled.message, kind=KIND))

    return errors
