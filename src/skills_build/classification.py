"""Shared good/bad classification of example labels.

Labels are free text, so classification is a case-insensitive substring
match against two token sets. Bad tokens take precedence: "Incorrect"
contains "correct" and must still classify as bad. The semantic invariant
checker selects examples through this module too, so a ``good`` example
assertion never matches an "Incorrect ..." example.
"""

from __future__ import annotations

from typing import Iterable

from skills_build.models import Example

GOOD = "good"
BAD = "bad"
NEUTRAL = "neutral"
ANY = "any"

EXAMPLE_CLASSES = (GOOD, BAD, ANY)

BAD_TOKENS = ("incorrect", "wrong", "bad", "problem", "avoid")
GOOD_TOKENS = (
    "correct",
    "good",
    "usage",
    "implementation",
    "example",
    "solution",
    "better",
    "optimized",
)


def classify_label(label: str) -> str:
    normalized = " ".join(label.lower().split())
    if any(token in normalized for token in BAD_TOKENS):
        return BAD
    if any(token in normalized for token in GOOD_TOKENS):
        return GOOD
    return NEUTRAL


def code_examples(examples: Iterable[Example]) -> list[Example]:
    return [example for example in examples if example.has_code]


def select_examples(examples: Iterable[Example], example_class: str) -> list[Example]:
    candidates = code_examples(examples)
    if example_class == ANY:
        return candidates
    if example_class not in (GOOD, BAD):
        raise ValueError(f"Unknown example class: {example_class}")
    return [example for example in candidates if classify_label(example.label) == example_class]
