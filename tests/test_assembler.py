from dataclasses import replace

import pytest

from helpers import make_rule
from skills_build.assembler import assemble
from skills_build.errors import AssemblyError
from skills_build.models import SectionInfo, SkillLayout, SkillMetadata, SubsectionMap
from skills_build.parser import parse_rule
from skills_build.render import render_document


def _rule(slug: str, impact: str = "HIGH"):
    return parse_rule(make_rule(title=slug.replace("-", " ").capitalize(), impact=impact), slug=slug)


@pytest.fixture
def layout():
    return SkillLayout(
        skill="mongodb-query-and-index-optimize",
        title="MongoDB Query and Index Optimization",
        section_map={"index": 1, "specialized": 2, "query": 3},
        sections={
            1: SectionInfo(title="Index Essentials", impact="CRITICAL"),
            2: SectionInfo(title="Specialized Indexes", impact="HIGH"),
        },
        subsection_map=SubsectionMap(category="index", rules={"index-partial": 2, "index-ttl": 2}),
    )


def test_rules_are_grouped_numbered_and_split_by_subsection(layout):
    rules = [
        _rule("index-partial"),
        _rule("query-projection"),
        _rule("index-compound-field-order"),
        _rule("index-ttl"),
        _rule("index-ensure-usage"),
    ]

    document = assemble(rules, layout)

    assert [section.number for section in document.sections] == [1, 2, 3]
    assert [(rule.number, rule.slug) for rule in document.sections[0].rules] == [
        ("1.1", "index-compound-field-order"),
        ("1.2", "index-ensure-usage"),
    ]
    assert [(rule.number, rule.slug) for rule in document.sections[1].rules] == [
        ("2.1", "index-partial"),
        ("2.2", "index-ttl"),
    ]
    assert document.sections[1].rules[0].subsection == 2
    assert document.sections[0].rules[0].subsection == 1
    assert document.sections[2].rules[0].subsection is None
    assert document.sections[0].title == "Index Essentials"


def test_assembly_never_drops_rules(layout):
    rules = [_rule(slug) for slug in ("query-a", "index-b", "index-partial", "query-c", "index-d")]

    document = assemble(rules, layout)

    assert document.rule_count == len(rules)
    assert sorted(rule.slug for s in document.sections for rule in s.rules) == sorted(r.slug for r in rules)


def test_unmapped_prefix_fails_whole_assembly(layout):
    rules = [_rule("query-projection"), _rule("agg-match-early")]

    with pytest.raises(AssemblyError, match="agg-match-early"):
        assemble(rules, layout)


def test_assembly_is_deterministic_and_leaves_inputs_untouched(layout):
    rules = [_rule("query-b"), _rule("index-a"), _rule("query-a")]

    first = assemble(rules, layout)
    second = assemble(rules, layout)

    assert first == second
    assert all(rule.number is None for rule in rules)
    assert [rule.slug for rule in first.sections[1].rules] == ["query-b", "query-a"]


def test_section_without_registry_metadata_derives_title_and_impact(layout):
    rules = [_rule("query-a", impact="MEDIUM"), _rule("query-b", impact="HIGH")]

    document = assemble(rules, layout)

    section = document.sections[0]
    assert section.title == "Query"
    assert section.impact == "HIGH"


def test_render_document_lists_sections_rules_and_examples(layout):
    rules = [_rule("index-compound-field-order", impact="CRITICAL"), _rule("index-partial")]
    metadata = SkillMetadata(version="2.0.0", organization="MongoDB", abstract="Index guidance.")

    markdown = render_document(assemble(rules, layout, metadata))

    assert markdown.startswith("# MongoDB Query and Index Optimization\n")
    assert "**Version 2.0.0**" in markdown
    assert "## Abstract" in markdown
    assert "## 1. Index Essentials" in markdown
    assert "### 1.1 Index compound field order" in markdown
    assert "### 2.1 Index partial" in markdown
    assert "**Incorrect: (array grows forever)**" in markdown
    assert "```javascript\ndb.comments.insertOne({ postId, text })\n```" in markdown
    assert "Reference: [https://www.mongodb.com/docs/manual/data-modeling/]" in markdown


def test_render_demotes_headings_in_rule_prose(layout):
    rule = replace(_rule("query-a"), explanation="## Why\n\nBecause.\n\n```bash\n# not a heading\n```")

    markdown = render_document(assemble([rule], layout))

    assert "#### Why" in markdown
    assert "# not a heading" in markdown
    assert "### not a heading" not in markdown
