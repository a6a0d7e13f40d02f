from pathlib import Path

import pytest

from helpers import FENCE, make_rule
from skills_build.errors import ParseError
from skills_build.parser import parse_rule, parse_rule_file


def test_parse_rule_extracts_metadata_examples_and_references():
    rule = parse_rule(make_rule(), slug="antipattern-unbounded-arrays")

    assert rule.slug == "antipattern-unbounded-arrays"
    assert rule.category == "antipattern"
    assert rule.title == "Avoid unbounded arrays"
    assert rule.impact == "CRITICAL"
    assert rule.impact_description == "prevents 16MB document limit errors"
    assert rule.tags == ("schema", "arrays")
    assert rule.explanation == "Arrays that grow without bound eventually hit the 16MB document limit."
    assert rule.references == ("https://www.mongodb.com/docs/manual/data-modeling/",)

    assert [example.label for example in rule.examples] == ["Incorrect", "Correct"]
    incorrect, correct = rule.examples
    assert incorrect.description == "array grows forever"
    assert incorrect.language == "javascript"
    assert incorrect.code.startswith("db.posts.updateOne")
    assert correct.description == "separate collection"
    assert correct.code == "db.comments.insertOne({ postId, text })"


def test_parse_rule_is_idempotent():
    text = make_rule()
    assert parse_rule(text, slug="x") == parse_rule(text, slug="x")


def test_trailing_prose_becomes_additional_text():
    text = "\n".join(
        [
            "---",
            "title: Use projections",
            "impact: HIGH",
            "---",
            "",
            "## Use projections",
            "",
            "Only fetch the fields you need.",
            "",
            "**Bad:**",
            "",
            f"{FENCE}python",
            "db.users.find({})",
            FENCE,
            "",
            "This returns whole documents.",
            "",
            "**Good:**",
            "",
            "Project two fields:",
            "",
            FENCE,
            "db.users.find({}, {'name': 1})",
            FENCE,
        ]
    )

    rule = parse_rule(text, slug="query-projections")

    bad, good = rule.examples
    assert bad.language == "python"
    assert bad.additional_text == "This returns whole documents."
    assert good.description == "Project two fields:"
    assert good.language == "javascript"


def test_heading_labels_and_neutral_sections_without_code():
    text = "\n".join(
        [
            "---",
            "title: Retry transient errors",
            "impact: HIGH",
            "---",
            "",
            "Retry the whole transaction on TransientTransactionError.",
            "",
            "### Correct usage",
            "",
            f"{FENCE}javascript",
            "await session.withTransaction(async () => {})",
            FENCE,
            "",
            "### Notes",
            "",
            "Commit errors need their own handling.",
        ]
    )

    rule = parse_rule(text, slug="retry-transient-errors")

    assert rule.explanation == "Retry the whole transaction on TransientTransactionError."
    assert [example.label for example in rule.examples] == ["Correct usage", "Notes"]
    notes = rule.examples[1]
    assert notes.code == ""
    assert not notes.has_code
    assert notes.description == "Commit errors need their own handling."


def test_second_level_heading_after_examples_stays_with_last_example():
    text = make_rule(extra_body="## When NOT to use\n\nSkip this for tiny fixed-size arrays.")

    rule = parse_rule(text, slug="antipattern-unbounded-arrays")

    assert len(rule.examples) == 2
    assert "## When NOT to use" in rule.examples[-1].additional_text
    assert "tiny fixed-size arrays" in rule.examples[-1].additional_text


def test_document_without_examples_still_parses():
    text = "---\ntitle: Draft rule\nimpact: LOW\n---\n\nJust prose for now.\n"

    rule = parse_rule(text, slug="pattern-draft")

    assert rule.examples == ()
    assert rule.explanation == "Just prose for now."


def test_links_inside_code_are_not_references():
    text = make_rule(
        examples=(("Correct", "fetch('https://example.com/not-a-reference')"),),
        references=("https://www.mongodb.com/docs/manual/core/transactions/",),
        extra_body="See <https://www.mongodb.com/docs/drivers/> for drivers.",
    )

    rule = parse_rule(text, slug="x")

    assert rule.references == (
        "https://www.mongodb.com/docs/drivers/",
        "https://www.mongodb.com/docs/manual/core/transactions/",
    )


def test_missing_metadata_header_is_a_parse_error():
    with pytest.raises(ParseError, match="Missing metadata header"):
        parse_rule("## Title\n\nBody\n", slug="x")


def test_unclosed_metadata_header_is_a_parse_error():
    with pytest.raises(ParseError, match="not closed"):
        parse_rule("---\ntitle: x\n\nBody\n", slug="x")


def test_unclosed_code_fence_is_a_parse_error():
    text = "---\ntitle: x\nimpact: LOW\n---\n\nBody\n\n**Correct:**\n\n```js\nconst a = 1\n"

    with pytest.raises(ParseError, match="Malformed labeled-example block"):
        parse_rule(text, slug="x")


def test_structured_impact_value_is_a_parse_error():
    text = "---\ntitle: x\nimpact:\n  - HIGH\n---\n\nBody\n"

    with pytest.raises(ParseError, match="Unparseable impact value"):
        parse_rule(text, slug="x")


@pytest.mark.parametrize(
    ("title_line", "expected"),
    [
        ("title: Bucket Pattern: Time Series", "Bucket Pattern: Time Series"),
        ("title: `$lookup` sparingly", "`$lookup` sparingly"),
        ('title: "Quoted: title"', "Quoted: title"),
    ],
)
def test_metadata_values_are_plain_text(title_line, expected):
    text = f"---\n{title_line}\nimpact: HIGH\n---\n\nBody\n"

    assert parse_rule(text, slug="x").title == expected


def test_metadata_tags_accept_lists():
    block = "---\ntitle: x\nimpact: LOW\ntags:\n  - schema\n  - 'arrays'\n---\n\nBody\n"
    flow = "---\ntitle: x\nimpact: LOW\ntags: [schema, arrays]\n---\n\nBody\n"

    assert parse_rule(block, slug="x").tags == ("schema", "arrays")
    assert parse_rule(flow, slug="x").tags == ("schema", "arrays")


def test_invalid_metadata_line_is_a_parse_error():
    text = "---\ntitle: x\njust some words\n---\n\nBody\n"

    with pytest.raises(ParseError, match="Invalid metadata line 3: 'just some words'"):
        parse_rule(text, slug="x")


def test_unknown_impact_string_is_left_to_the_validator():
    rule = parse_rule(make_rule(impact="URGENT"), slug="x")
    assert rule.impact == "URGENT"


def test_parse_rule_file_uses_filename_as_identity(tmp_path: Path):
    path = tmp_path / "fundamental-embed-data.md"
    path.write_text(make_rule(), encoding="utf-8")

    parsed = parse_rule_file(path, file_ref="mongodb-schema-design/fundamental-embed-data.md")

    assert parsed.rule.slug == "fundamental-embed-data"
    assert parsed.file_ref == "mongodb-schema-design/fundamental-embed-data.md"
    assert parsed.raw.startswith("---")
