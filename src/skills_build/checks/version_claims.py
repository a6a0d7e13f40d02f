from __future__ import annotations

import logging

from skills_build.checks.patterns import KIND, compile_regex, run_pattern_checks
from skills_build.models import VersionClaimRegistry, Violation

logger = logging.getLogger(__name__)

MISSING_OFFICIAL_REFERENCE = "Contains version claims but is missing an official documentation Reference line"


def check_version_claims(contents: dict[str, str], registry: VersionClaimRegistry) -> list[Violation]:
    """Apply the global version-claim guard, path rules and file rules.

    ``contents`` maps skills-root-relative paths (``skill/rules/file.md``) to
    raw file text. Every file is checked; errors are aggregated.
    """
    errors: list[Violation] = []

    version_claim = compile_regex(registry.version_claim_pattern, None, "registry.global.versionClaimPattern")
    official_reference = compile_regex(
        registry.official_reference_pattern, "m", "registry.global.officialReferencePattern"
    )
    content_path = compile_regex(registry.content_path_pattern, None, "registry.global.contentPathPattern")
    path_rules = [
        (compile_regex(rule.path_pattern, None, f"registry.pathRules[{index}].pathRegex"), index, rule)
        for index, rule in enumerate(registry.path_rules)
    ]

    for file in sorted(contents):
        content = contents[file]
        if (
            registry.enforce_official_reference
            and content_path.search(file)
            and version_claim.search(content)
            and not official_reference.search(content)
        ):
            errors.append(Violation(file=file, message=MISSING_OFFICIAL_REFERENCE, kind=KIND))

        for path_regex, index, rule in path_rules:
            if not path_regex.search(file):
                continue
            errors.extend(
                run_pattern_checks(
                    file,
                    content,
                    rule.requirements,
                    rule.prohibitions,
                    f"registry.pathRules[{index}]",
                )
            )

    for index, file_rule in enumerate(registry.file_rules):
        content = contents.get(file_rule.file)
        if content is None:
            errors.append(Violation(file=file_rule.file, message="File rule target not found", kind=KIND))
            continue
        errors.extend(
            run_pattern_checks(
                file_rule.file,
                content,
                file_rule.requirements,
                file_rule.prohibitions,
                f"registry.fileRules[{index}]",
            )
        )

    logger.info("Version-claim checks covered %d files with %d errors", len(contents), len(errors))
    return errors
