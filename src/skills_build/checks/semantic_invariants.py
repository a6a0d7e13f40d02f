from __future__ import annotations

import logging
import re
from pathlib import Path

from skills_build.checks.patterns import KIND
from skills_build.classification import select_examples
from skills_build.errors import ParseError
from skills_build.models import Example, SemanticInvariant, Violation
from skills_build.parser import parse_rule

logger = logging.getLogger(__name__)

_SECOND_LEVEL_HEADING_RE = re.compile(r"^##\s+(.+)$", re.MULTILINE)


def extract_headings(content: str) -> set[str]:
    return {match.group(1).strip() for match in _SECOND_LEVEL_HEADING_RE.finditer(content)}


def validate_invariant(
    invariant: SemanticInvariant,
    raw_content: str,
    examples: tuple[Example, ...],
) -> list[Violation]:
    errors: list[Violation] = []
    file = invariant.target_file
    headings = extract_headings(raw_content)

    for heading in invariant.required_headings:
        if heading not in headings:
            errors.append(Violation(file=file, message=f'Missing required heading: "{heading}"', kind=KIND))

    for phrase in invariant.required_phrases:
        if phrase not in raw_content:
            errors.append(Violation(file=file, message=f'Missing required phrase: "{phrase}"', kind=KIND))

    for assertion in invariant.example_assertions:
        candidates = select_examples(examples, assertion.example_class)
        matched = any(
            all(token in example.code for token in assertion.required_tokens) for example in candidates
        )
        if not matched:
            tokens = ", ".join(assertion.required_tokens)
            errors.append(
                Violation(file=file, message=f"{assertion.message} (expected tokens: {tokens})", kind=KIND)
            )

    return errors


def check_semantic_invariants(skills_root: str | Path, invariants: list[SemanticInvariant]) -> list[Violation]:
    root = Path(skills_root)
    errors: list[Violation] = []

    for invariant in invariants:
        target = root / invariant.target_file
        try:
            raw_content = target.read_text(encoding="utf-8")
        except OSError:
            errors.append(Violation(file=invariant.target_file, message="Invariant target file not found", kind=KIND))
            continue

        try:
            rule = parse_rule(raw_content, slug=target.stem)
        except ParseError as exc:
            errors.append(
                Violation(
                    file=invariant.target_file,
                    message=f"Failed to parse rule for semantic checks: {exc}",
                    kind=KIND,
                )
            )
            continue

        errors.extend(validate_invariant(invariant, raw_content, rule.examples))

    logger.info("Semantic invariant checks covered %d rules with %d errors", len(invariants), len(errors))
    return errors
