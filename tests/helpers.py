from __future__ import annotations

import json
from pathlib import Path

FENCE = "```"


def make_rule(
    *,
    title: str = "Avoid unbounded arrays",
    impact: str = "CRITICAL",
    explanation: str = "Arrays that grow without bound eventually hit the 16MB document limit.",
    examples: tuple[tuple[str, str], ...] = (
        ("Incorrect (array grows forever)", "db.posts.updateOne({ _id: postId }, { $push: { comments: comment } })"),
        ("Correct (separate collection)", "db.comments.insertOne({ postId, text })"),
    ),
    references: tuple[str, ...] = ("https://www.mongodb.com/docs/manual/data-modeling/",),
    extra_body: str = "",
) -> str:
    lines = [
        "---",
        f"title: {title}",
        f"impact: {impact}",
        "impactDescription: prevents 16MB document limit errors",
        "tags: schema, arrays",
        "---",
        "",
        f"## {title}",
        "",
        explanation,
        "",
    ]
    for label, code in examples:
        lines.extend([f"**{label}:**", "", f"{FENCE}javascript", code, FENCE, ""])
    if extra_body:
        lines.extend([extra_body, ""])
    for url in references:
        lines.append(f"Reference: [{url}]({url})")
    return "\n".join(lines) + "\n"


def write_rule(skills_root: Path, skill: str, filename: str, text: str) -> Path:
    rules_dir = skills_root / skill / "rules"
    rules_dir.mkdir(parents=True, exist_ok=True)
    path = rules_dir / filename
    path.write_text(text, encoding="utf-8")
    return path


def write_json(path: Path, payload: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path
