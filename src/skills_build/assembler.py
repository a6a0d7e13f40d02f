from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from skills_build.errors import AssemblyError
from skills_build.models import (
    IMPACT_LEVELS,
    CompiledDocument,
    Rule,
    Section,
    SectionInfo,
    SkillLayout,
    SkillMetadata,
)

logger = logging.getLogger(__name__)


def assign_section(rule: Rule, layout: SkillLayout) -> tuple[int, int | None]:
    base = layout.section_map[rule.category]
    subsections = layout.subsection_map
    if subsections is None or rule.category != subsections.category:
        return base, None
    subsection = subsections.rules.get(rule.slug, 1)
    return base + subsection - 1, subsection


def assemble(
    rules: Iterable[Rule],
    layout: SkillLayout,
    metadata: SkillMetadata | None = None,
) -> CompiledDocument:
    """Group ``rules`` (in discovery order) into numbered sections.

    Ordering is a stable sort on (section, subsection, discovery index), so
    identical inputs always produce identical output. A rule whose category
    prefix is missing from the layout fails the whole assembly.
    """
    ordered = list(rules)
    unmapped = sorted({rule.slug for rule in ordered if rule.category not in layout.section_map})
    if unmapped:
        raise AssemblyError(
            f"No section mapping for skill '{layout.skill}' covers rules: {', '.join(unmapped)}"
        )

    placed: list[tuple[int, int, int, Rule]] = []
    for index, rule in enumerate(ordered):
        section, subsection = assign_section(rule, layout)
        placed.append((section, subsection or 0, index, replace(rule, section=section, subsection=subsection)))
    placed.sort(key=lambda item: item[:3])

    grouped: dict[int, list[Rule]] = {}
    for section, _, _, rule in placed:
        members = grouped.setdefault(section, [])
        members.append(replace(rule, number=f"{section}.{len(members) + 1}"))

    sections = tuple(
        _build_section(number, tuple(members), layout) for number, members in sorted(grouped.items())
    )
    document = CompiledDocument(
        skill=layout.skill,
        title=layout.title,
        metadata=metadata or SkillMetadata(),
        sections=sections,
    )
    logger.info(
        "Assembled %d rules into %d sections for %s", document.rule_count, len(sections), layout.skill
    )
    return document


def _build_section(number: int, rules: tuple[Rule, ...], layout: SkillLayout) -> Section:
    info = layout.sections.get(number) or _derived_section_info(number, rules, layout)
    return Section(
        number=number,
        title=info.title,
        impact=info.impact,
        rules=rules,
        impact_description=info.impact_description,
        introduction=info.introduction,
    )


def _derived_section_info(number: int, rules: tuple[Rule, ...], layout: SkillLayout) -> SectionInfo:
    prefixes = [prefix for prefix, value in layout.section_map.items() if value == number]
    title = prefixes[0].replace("_", " ").title() if prefixes else f"{rules[0].category.title()} ({number})"

    impacts = [IMPACT_LEVELS.index(rule.impact) for rule in rules if rule.impact in IMPACT_LEVELS]
    impact = IMPACT_LEVELS[min(impacts)] if impacts else "MEDIUM"
    return SectionInfo(title=title, impact=impact)
