from __future__ import annotations

import re

from skills_build.models import CompiledDocument, Example, Rule, Section

_HEADING_LINE_RE = re.compile(r"^(#{1,4})(\s+)")
_FENCE_LINE_RE = re.compile(r"^\s*(`{3,}|~{3,})")


def anchor(text: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    return re.sub(r"\s+", "-", slug.strip())


def render_document(document: CompiledDocument) -> str:
    meta = document.metadata
    lines: list[str] = [f"# {document.title}", ""]

    header = [f"**Version {meta.version}**"]
    if meta.organization:
        header.append(meta.organization)
    if meta.date:
        header.append(meta.date)
    lines.append("  \n".join(header))
    lines.extend(
        [
            "",
            "> **Note:** This document is generated from the individual rule files. "
            "Edit the rules, then rebuild; do not edit this file directly.",
            "",
            "---",
            "",
        ]
    )

    if meta.abstract:
        lines.extend(["## Abstract", "", meta.abstract.strip(), "", "---", ""])

    lines.extend(["## Table of Contents", ""])
    for section in document.sections:
        section_heading = f"{section.number}. {section.title}"
        lines.append(f"{section.number}. [{section.title}](#{anchor(section_heading)}) - **{section.impact}**")
        for rule in section.rules:
            rule_heading = f"{rule.number} {rule.title}"
            lines.append(f"   - {rule.number} [{rule.title}](#{anchor(rule_heading)})")
    lines.extend(["", "---", ""])

    for section in document.sections:
        lines.extend(_render_section(section))

    if meta.references:
        lines.extend(["## References", ""])
        lines.extend(f"{index}. {ref}" for index, ref in enumerate(meta.references, start=1))
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _render_section(section: Section) -> list[str]:
    impact = f"**Impact: {section.impact}**"
    if section.impact_description:
        impact = f"**Impact: {section.impact} ({section.impact_description})**"
    lines = [f"## {section.number}. {section.title}", "", impact, ""]
    if section.introduction:
        lines.extend([section.introduction.strip(), ""])
    for rule in section.rules:
        lines.extend(_render_rule(rule))
    lines.extend(["---", ""])
    return lines


def _render_rule(rule: Rule) -> list[str]:
    impact = f"**Impact: {rule.impact}**"
    if rule.impact_description:
        impact = f"**Impact: {rule.impact} ({rule.impact_description})**"

    lines = [f"### {rule.number} {rule.title}", "", impact, "", _demote(rule.explanation), ""]
    for example in rule.examples:
        lines.extend(_render_example(example))

    if rule.references:
        links = ", ".join(f"[{url}]({url})" for url in rule.references)
        lines.extend([f"Reference: {links}", ""])
    return lines


def _render_example(example: Example) -> list[str]:
    label = f"**{example.label}:**"
    if example.description and "\n" not in example.description:
        label = f"**{example.label}: ({example.description})**"
        lines = [label, ""]
    else:
        lines = [label, ""]
        if example.description:
            lines.extend([_demote(example.description), ""])

    if example.has_code:
        lines.extend([f"```{example.language}", example.code, "```", ""])
    if example.additional_text:
        lines.extend([_demote(example.additional_text), ""])
    return lines


def _demote(text: str) -> str:
    """Push headings inside rule prose below the rule's own ``###`` level."""
    lines: list[str] = []
    in_fence = False
    for line in text.splitlines():
        if _FENCE_LINE_RE.match(line):
            in_fence = not in_fence
        elif not in_fence:
            line = _HEADING_LINE_RE.sub(lambda match: "#" * (len(match.group(1)) + 2) + match.group(2), line)
        lines.append(line)
    return "\n".join(lines)
