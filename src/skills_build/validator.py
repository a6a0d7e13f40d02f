from __future__ import annotations

from skills_build.classification import NEUTRAL, classify_label, code_examples
from skills_build.models import IMPACT_LEVELS, Rule, Violation

KIND = "structural"


def validate_rule(rule: Rule, file: str) -> list[Violation]:
    """Return every structural problem of ``rule``; checks never short-circuit."""
    errors: list[Violation] = []

    def add(message: str) -> None:
        errors.append(Violation(file=file, message=message, kind=KIND, rule_id=rule.number))

    if not rule.title.strip():
        add("Missing or empty title")

    if not rule.explanation.strip():
        add("Missing or empty explanation")

    if rule.impact not in IMPACT_LEVELS:
        add(f"Invalid impact level: {rule.impact or '<missing>'}. Must be one of: {', '.join(IMPACT_LEVELS)}")

    with_code = code_examples(rule.examples)
    if not rule.examples:
        add("Missing examples (need at least one bad or good example)")
    elif not with_code:
        add("Missing code examples")
    elif all(classify_label(example.label) == NEUTRAL for example in with_code):
        add("Missing bad/incorrect or good/correct examples")

    return errors
