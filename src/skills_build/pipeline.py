from __future__ import annotations

import json
import logging
from pathlib import Path

from skills_build.assembler import assemble
from skills_build.checks.links import check_links, collect_references
from skills_build.checks.release_watch import run_release_watch
from skills_build.checks.semantic_invariants import check_semantic_invariants
from skills_build.checks.version_claims import check_version_claims
from skills_build.config import (
    load_category_registry,
    load_release_watch_registry,
    load_semantic_registry,
    load_skill_metadata,
    load_version_claim_registry,
)
from skills_build.errors import ConfigError, ParseError, RegistryError
from skills_build.extract_tests import build_test_suite
from skills_build.models import BuildConfig, CheckSummary, ParsedRule, Violation
from skills_build.parser import parse_rule_file
from skills_build.render import render_document
from skills_build.validator import validate_rule

logger = logging.getLogger(__name__)

OUTPUT_FILENAME = "AGENTS.md"
TEST_CASES_FILENAME = "test-cases.json"


def discover_skills(config: BuildConfig) -> list[Path]:
    root = Path(config.skills_root)
    if not root.is_dir():
        raise ConfigError(f"Skills root does not exist: {root}")
    return sorted(
        path
        for path in root.iterdir()
        if path.is_dir() and path.name.startswith(config.skill_prefix) and (path / "rules").is_dir()
    )


def skill_dir(config: BuildConfig, skill: str) -> Path:
    path = Path(config.skills_root) / skill
    if not (path / "rules").is_dir():
        raise ConfigError(f"Skill has no rules directory: {path}")
    return path


def list_rule_files(skill_path: Path) -> list[Path]:
    return sorted(
        path
        for path in (skill_path / "rules").glob("*.md")
        if path.is_file() and not path.name.startswith("_") and path.name != "README.md"
    )


def load_skill_rules(skill_path: Path) -> tuple[list[ParsedRule], list[Violation]]:
    """Parse every rule file of one skill; unparseable files are reported and skipped."""
    parsed: list[ParsedRule] = []
    errors: list[Violation] = []
    for path in list_rule_files(skill_path):
        file_ref = f"{skill_path.name}/{path.name}"
        try:
            parsed.append(parse_rule_file(path, file_ref=file_ref))
        except ParseError as exc:
            errors.append(Violation(file=file_ref, message=f"Failed to parse: {exc}", kind="parse"))
    return parsed, errors


def load_rule_contents(config: BuildConfig) -> dict[str, str]:
    contents: dict[str, str] = {}
    for skill_path in discover_skills(config):
        for path in sorted((skill_path / "rules").glob("*.md")):
            if path.name == "README.md" or not path.is_file():
                continue
            contents[f"{skill_path.name}/rules/{path.name}"] = path.read_text(encoding="utf-8")
    return contents


def run_validate(config: BuildConfig) -> CheckSummary:
    errors: list[Violation] = []
    per_skill: dict[str, int] = {}
    total = 0

    for skill_path in discover_skills(config):
        parsed, parse_errors = load_skill_rules(skill_path)
        errors.extend(parse_errors)
        for item in parsed:
            errors.extend(validate_rule(item.rule, item.file_ref))
        per_skill[skill_path.name] = len(parsed) + len(parse_errors)
        total += len(parsed)
        logger.info("Validated %s: %d rules", skill_path.name, per_skill[skill_path.name])

    return CheckSummary(
        check="validate",
        checked=total,
        violations=tuple(errors),
        details={"skills": per_skill},
    )


def run_build(config: BuildConfig, skill: str) -> CheckSummary:
    path = skill_dir(config, skill)
    layouts = load_category_registry(config.category_registry_path)
    if skill not in layouts:
        raise RegistryError(f"No category registry entry for skill: {skill}")

    parsed, errors = load_skill_rules(path)
    output = path / OUTPUT_FILENAME
    details: dict[str, object] = {"skill": skill, "output": None, "sections": 0}
    if errors:
        logger.warning("Skipping %s: %d rule files failed to parse", output, len(errors))
        return CheckSummary(check="build", checked=len(parsed), violations=tuple(errors), details=details)

    document = assemble([item.rule for item in parsed], layouts[skill], load_skill_metadata(path))
    output.write_text(render_document(document), encoding="utf-8")
    logger.info("Wrote %s (%d rules)", output, document.rule_count)

    details.update({"output": str(output.resolve()), "sections": len(document.sections)})
    return CheckSummary(check="build", checked=document.rule_count, details=details)


def run_extract_tests(config: BuildConfig, skill: str) -> CheckSummary:
    path = skill_dir(config, skill)
    parsed, errors = load_skill_rules(path)
    suite = build_test_suite(skill, [item.rule for item in parsed])

    output = path / TEST_CASES_FILENAME
    with output.open("w", encoding="utf-8") as handle:
        json.dump(suite, handle, indent=2, ensure_ascii=True)
        handle.write("\n")

    return CheckSummary(
        check="extract-tests",
        checked=len(parsed),
        violations=tuple(errors),
        details={"output": str(output.resolve()), "total": suite["totalTestCases"], **suite["summary"]},
    )


def run_version_claims(config: BuildConfig) -> CheckSummary:
    registry = load_version_claim_registry(config.version_claim_registry_path)
    contents = load_rule_contents(config)
    errors = check_version_claims(contents, registry)
    return CheckSummary(check="version-claims", checked=len(contents), violations=tuple(errors))


def run_semantic_invariants(config: BuildConfig) -> CheckSummary:
    invariants = load_semantic_registry(config.semantic_registry_path)
    errors = check_semantic_invariants(config.skills_root, invariants)
    return CheckSummary(check="semantic-invariants", checked=len(invariants), violations=tuple(errors))


def run_link_check(config: BuildConfig) -> CheckSummary:
    parsed: list[ParsedRule] = []
    for skill_path in discover_skills(config):
        skill_rules, parse_errors = load_skill_rules(skill_path)
        parsed.extend(skill_rules)
        for error in parse_errors:
            logger.warning("Skipping links of %s: %s", error.file, error.message)

    references = collect_references(parsed)
    results, errors = check_links(references, config.network)
    return CheckSummary(
        check="links",
        checked=len(references),
        violations=tuple(errors),
        details={"failed_urls": sorted(item.url for item in results if not item.ok)},
    )


def run_release_watch_check(config: BuildConfig) -> CheckSummary:
    checks = load_release_watch_registry(config.release_watch_registry_path)
    results, errors = run_release_watch(checks, config.network)
    return CheckSummary(
        check="release-watch",
        checked=len(checks),
        violations=tuple(errors),
        details={"results": [item.to_dict() for item in results]},
    )


def run_all(config: BuildConfig) -> list[CheckSummary]:
    """Run every check to completion; a failing check never stops its siblings."""
    load_version_claim_registry(config.version_claim_registry_path)
    load_semantic_registry(config.semantic_registry_path)
    load_release_watch_registry(config.release_watch_registry_path)

    return [
        run_validate(config),
        run_version_claims(config),
        run_semantic_invariants(config),
        run_link_check(config),
        run_release_watch_check(config),
    ]
