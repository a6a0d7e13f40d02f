from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from skills_build.checks.patterns import compile_regex
from skills_build.classification import EXAMPLE_CLASSES
from skills_build.errors import ConfigError, RegistryError
from skills_build.models import (
    IMPACT_LEVELS,
    BuildConfig,
    ExampleAssertion,
    FileRule,
    NetworkSettings,
    PathRule,
    PatternRule,
    ReleaseWatchCheck,
    SectionInfo,
    SemanticInvariant,
    SkillLayout,
    SkillMetadata,
    SubsectionMap,
    VersionClaimRegistry,
)
from skills_build.versions import parse_version


def load_config(path: str | Path) -> BuildConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    raw = _read_json(config_path, ConfigError)
    if not isinstance(raw, dict):
        raise ConfigError("Config must be a JSON object")

    defaults = BuildConfig()
    registries = raw.get("registries", {})
    if not isinstance(registries, dict):
        raise ConfigError("'registries' must be an object")

    network_raw = raw.get("network", {})
    if not isinstance(network_raw, dict):
        raise ConfigError("'network' must be an object")

    network_defaults = NetworkSettings()
    try:
        network = NetworkSettings(
            timeout_seconds=float(network_raw.get("timeout_seconds", network_defaults.timeout_seconds)),
            retries=int(network_raw.get("retries", network_defaults.retries)),
            backoff_seconds=float(network_raw.get("backoff_seconds", network_defaults.backoff_seconds)),
            concurrency=int(network_raw.get("concurrency", network_defaults.concurrency)),
            user_agent=str(network_raw.get("user_agent", network_defaults.user_agent)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid 'network' settings: {exc}") from exc
    if network.retries < 0 or network.concurrency < 1 or network.timeout_seconds <= 0:
        raise ConfigError("'network' needs retries >= 0, concurrency >= 1 and a positive timeout")

    return BuildConfig(
        skills_root=str(raw.get("skills_root", defaults.skills_root)),
        skill_prefix=str(raw.get("skill_prefix", defaults.skill_prefix)),
        category_registry_path=str(registries.get("category", defaults.category_registry_path)),
        version_claim_registry_path=str(
            registries.get("version_claims", defaults.version_claim_registry_path)
        ),
        semantic_registry_path=str(registries.get("semantic_invariants", defaults.semantic_registry_path)),
        release_watch_registry_path=str(
            registries.get("release_watch", defaults.release_watch_registry_path)
        ),
        network=network,
    )


def load_category_registry(path: str | Path) -> dict[str, SkillLayout]:
    raw = _load_registry_object(path)
    skills_raw = raw.get("skills")
    if not isinstance(skills_raw, dict) or not skills_raw:
        raise RegistryError("Category registry must include a non-empty 'skills' object")

    layouts: dict[str, SkillLayout] = {}
    for skill, item in skills_raw.items():
        scope = f"skills[{skill}]"
        if not isinstance(item, dict):
            raise RegistryError(f"{scope} must be an object")

        section_map_raw = item.get("sectionMap")
        if not isinstance(section_map_raw, dict) or not section_map_raw:
            raise RegistryError(f"{scope} is missing a non-empty 'sectionMap'")
        section_map = {str(prefix): _as_int(number, f"{scope}.sectionMap[{prefix}]") for prefix, number in section_map_raw.items()}

        sections: dict[int, SectionInfo] = {}
        sections_raw = item.get("sections", {})
        if not isinstance(sections_raw, dict):
            raise RegistryError(f"{scope}.sections must be an object")
        for number, info in sections_raw.items():
            section_scope = f"{scope}.sections[{number}]"
            if not isinstance(info, dict) or "title" not in info:
                raise RegistryError(f"{section_scope} must be an object with a 'title'")
            impact = str(info.get("impact", "MEDIUM"))
            if impact not in IMPACT_LEVELS:
                raise RegistryError(f"{section_scope} has invalid impact: {impact}")
            sections[_as_int(number, section_scope)] = SectionInfo(
                title=str(info["title"]),
                impact=impact,
                impact_description=_optional_str(info.get("impactDescription")),
                introduction=_optional_str(info.get("introduction")),
            )

        subsection_map = None
        subsection_raw = item.get("subsectionMap")
        if subsection_raw is not None:
            if not isinstance(subsection_raw, dict) or not isinstance(subsection_raw.get("rules"), dict):
                raise RegistryError(f"{scope}.subsectionMap must be an object with 'category' and 'rules'")
            category = str(subsection_raw.get("category", "")).strip()
            if category not in section_map:
                raise RegistryError(f"{scope}.subsectionMap.category is not in sectionMap: {category!r}")
            subsection_map = SubsectionMap(
                category=category,
                rules={
                    str(name): _as_int(value, f"{scope}.subsectionMap.rules[{name}]")
                    for name, value in subsection_raw["rules"].items()
                },
            )

        layouts[str(skill)] = SkillLayout(
            skill=str(skill),
            title=str(item.get("title") or skill),
            section_map=section_map,
            sections=sections,
            subsection_map=subsection_map,
        )

    return layouts


def load_version_claim_registry(path: str | Path) -> VersionClaimRegistry:
    raw = _load_registry_object(path)
    global_raw = raw.get("global")
    if not isinstance(global_raw, dict):
        raise RegistryError("Version-claim registry must include a 'global' object")

    missing = [
        key
        for key in ("enforceOfficialReferenceForVersionClaims", "versionClaimPattern", "officialReferencePattern")
        if key not in global_raw
    ]
    if missing:
        raise RegistryError(f"Version-claim registry 'global' is missing keys: {', '.join(missing)}")

    registry = VersionClaimRegistry(
        enforce_official_reference=bool(global_raw["enforceOfficialReferenceForVersionClaims"]),
        version_claim_pattern=str(global_raw["versionClaimPattern"]),
        official_reference_pattern=str(global_raw["officialReferencePattern"]),
        content_path_pattern=str(
            global_raw.get("contentPathPattern", VersionClaimRegistry.content_path_pattern)
        ),
        path_rules=tuple(
            PathRule(
                path_pattern=str(_require(item, "pathRegex", f"pathRules[{index}]")),
                requirements=_pattern_rules(item.get("requirements"), f"pathRules[{index}].requirements"),
                prohibitions=_pattern_rules(item.get("prohibitions"), f"pathRules[{index}].prohibitions"),
            )
            for index, item in enumerate(_object_list(raw.get("pathRules"), "pathRules"))
        ),
        file_rules=tuple(
            FileRule(
                file=str(_require(item, "file", f"fileRules[{index}]")),
                requirements=_pattern_rules(item.get("requirements"), f"fileRules[{index}].requirements"),
                prohibitions=_pattern_rules(item.get("prohibitions"), f"fileRules[{index}].prohibitions"),
            )
            for index, item in enumerate(_object_list(raw.get("fileRules"), "fileRules"))
        ),
    )

    compile_regex(registry.version_claim_pattern, None, "registry.global.versionClaimPattern")
    compile_regex(registry.official_reference_pattern, "m", "registry.global.officialReferencePattern")
    compile_regex(registry.content_path_pattern, None, "registry.global.contentPathPattern")
    for index, path_rule in enumerate(registry.path_rules):
        compile_regex(path_rule.path_pattern, None, f"registry.pathRules[{index}].pathRegex")
    return registry


def load_semantic_registry(path: str | Path) -> list[SemanticInvariant]:
    raw = _load_registry_object(path)
    invariants: list[SemanticInvariant] = []
    for index, item in enumerate(_object_list(raw.get("invariants"), "invariants")):
        scope = f"invariants[{index}]"
        assertions: list[ExampleAssertion] = []
        for position, assertion in enumerate(_object_list(item.get("exampleAssertions"), f"{scope}.exampleAssertions")):
            assertion_scope = f"{scope}.exampleAssertions[{position}]"
            kind = str(assertion.get("kind", "any"))
            if kind not in EXAMPLE_CLASSES:
                raise RegistryError(f"{assertion_scope}.kind must be one of {', '.join(EXAMPLE_CLASSES)}")
            tokens = _ensure_string_list(assertion.get("containsAll"), f"{assertion_scope}.containsAll")
            if not tokens:
                raise RegistryError(f"{assertion_scope}.containsAll must not be empty")
            assertions.append(
                ExampleAssertion(
                    example_class=kind,
                    required_tokens=tuple(tokens),
                    message=str(assertion.get("message") or "Example assertion failed"),
                )
            )

        invariants.append(
            SemanticInvariant(
                target_file=str(_require(item, "file", scope)),
                required_headings=tuple(_ensure_string_list(item.get("requiredHeadings"), f"{scope}.requiredHeadings")),
                required_phrases=tuple(_ensure_string_list(item.get("requiredPhrases"), f"{scope}.requiredPhrases")),
                example_assertions=tuple(assertions),
            )
        )
    return invariants


def load_release_watch_registry(path: str | Path) -> list[ReleaseWatchCheck]:
    raw = _load_registry_object(path)
    checks: list[ReleaseWatchCheck] = []
    for index, item in enumerate(_object_list(raw.get("checks"), "checks")):
        scope = f"checks[{index}]"
        missing = [key for key in ("id", "url", "versionPattern", "expectedLatest") if key not in item]
        if missing:
            raise RegistryError(f"{scope} is missing keys: {', '.join(missing)}")

        check = ReleaseWatchCheck(
            id=str(item["id"]),
            url=str(item["url"]),
            version_pattern=str(item["versionPattern"]),
            expected_latest=str(item["expectedLatest"]),
            description=_optional_str(item.get("description")),
        )
        compile_regex(check.version_pattern, None, f"registry.{scope}.versionPattern")
        if parse_version(check.expected_latest) is None:
            raise RegistryError(f"[{check.id}] Invalid expectedLatest semver: {check.expected_latest}")
        checks.append(check)
    return checks


def load_skill_metadata(skill_dir: str | Path) -> SkillMetadata:
    metadata_path = Path(skill_dir) / "metadata.json"
    if not metadata_path.exists():
        return SkillMetadata()

    raw = _read_json(metadata_path, ConfigError)
    if not isinstance(raw, dict):
        raise ConfigError(f"Skill metadata must be a JSON object: {metadata_path}")
    defaults = SkillMetadata()
    return SkillMetadata(
        version=str(raw.get("version", defaults.version)),
        organization=str(raw.get("organization", defaults.organization)),
        date=str(raw.get("date", defaults.date)),
        abstract=str(raw.get("abstract", defaults.abstract)),
        references=tuple(_ensure_string_list(raw.get("references"), "metadata.references", ConfigError)),
    )


def _load_registry_object(path: str | Path) -> dict[str, Any]:
    registry_path = Path(path)
    if not registry_path.exists():
        raise RegistryError(f"Registry file not found: {registry_path}")
    raw = _read_json(registry_path, RegistryError)
    if not isinstance(raw, dict):
        raise RegistryError(f"Registry must be a JSON object: {registry_path}")
    return raw


def _read_json(path: Path, error_type: type[ConfigError]) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise error_type(f"Invalid JSON in {path}: {exc}") from exc


def _pattern_rules(value: object, scope: str) -> tuple[PatternRule, ...]:
    rules: list[PatternRule] = []
    for index, item in enumerate(_object_list(value, scope)):
        item_scope = f"{scope}[{index}]"
        rule = PatternRule(
            pattern=str(_require(item, "pattern", item_scope)),
            message=str(_require(item, "message", item_scope)),
            flags=str(item.get("flags") or ""),
        )
        compile_regex(rule.pattern, rule.flags, f"registry.{item_scope}")
        rules.append(rule)
    return tuple(rules)


def _object_list(value: object, scope: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise RegistryError(f"'{scope}' must be a list")
    for item in value:
        if not isinstance(item, dict):
            raise RegistryError(f"Each '{scope}' entry must be an object")
    return value


def _require(item: dict[str, Any], key: str, scope: str) -> object:
    if key not in item:
        raise RegistryError(f"{scope} is missing '{key}'")
    return item[key]


def _as_int(value: object, scope: str) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise RegistryError(f"{scope} must be an integer, got {value!r}") from exc


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _ensure_string_list(
    value: object,
    scope: str,
    error_type: type[ConfigError] = RegistryError,
) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise error_type(f"Expected a list of strings for '{scope}'")
    return [str(item) for item in value]
