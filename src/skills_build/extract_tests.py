from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from skills_build.classification import BAD, GOOD, classify_label, code_examples
from skills_build.models import Rule


def extract_test_cases(rule: Rule) -> list[dict[str, Any]]:
    test_cases: list[dict[str, Any]] = []
    for example in code_examples(rule.examples):
        example_class = classify_label(example.label)
        if example_class not in (GOOD, BAD):
            continue
        test_cases.append(
            {
                "ruleId": rule.slug,
                "ruleTitle": rule.title,
                "type": example_class,
                "code": example.code,
                "language": example.language,
                "description": example.description or f"{example.label} example for {rule.title}",
            }
        )
    return test_cases


def build_test_suite(skill: str, rules: Iterable[Rule]) -> dict[str, Any]:
    test_cases = [case for rule in rules for case in extract_test_cases(rule)]
    return {
        "skill": skill,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "totalTestCases": len(test_cases),
        "summary": {
            "badExamples": sum(1 for case in test_cases if case["type"] == BAD),
            "goodExamples": sum(1 for case in test_cases if case["type"] == GOOD),
        },
        "testCases": test_cases,
    }
