from helpers import make_rule
from skills_build.extract_tests import build_test_suite, extract_test_cases
from skills_build.parser import parse_rule


def test_extract_test_cases_keeps_only_classified_code_examples():
    rule = parse_rule(
        make_rule(
            examples=(
                ("Incorrect (scan everything)", "db.orders.find({})"),
                ("Correct (indexed)", "db.orders.find({ status: 'open' })"),
                ("Notes", "// trade-offs"),
            )
        ),
        slug="query-use-index",
    )

    cases = extract_test_cases(rule)

    assert [case["type"] for case in cases] == ["bad", "good"]
    assert cases[0] == {
        "ruleId": "query-use-index",
        "ruleTitle": "Avoid unbounded arrays",
        "type": "bad",
        "code": "db.orders.find({})",
        "language": "javascript",
        "description": "scan everything",
    }


def test_build_test_suite_summarizes_counts():
    rules = [
        parse_rule(make_rule(), slug="antipattern-unbounded-arrays"),
        parse_rule(make_rule(examples=(("Good", "db.c.find()"),)), slug="query-a"),
    ]

    suite = build_test_suite("mongodb-schema-design", rules)

    assert suite["skill"] == "mongodb-schema-design"
    assert suite["totalTestCases"] == 3
    assert suite["summary"] == {"badExamples": 1, "goodExamples": 2}
    assert suite["generatedAt"]
