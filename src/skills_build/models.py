from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

IMPACT_LEVELS = ("CRITICAL", "HIGH", "MEDIUM-HIGH", "MEDIUM", "LOW-MEDIUM", "LOW")

DEFAULT_LANGUAGE = "javascript"

VIOLATION_KINDS = ("parse", "structural", "content", "network", "drift")


@dataclass(frozen=True)
class Example:
    label: str
    code: str
    language: str = DEFAULT_LANGUAGE
    description: str | None = None
    additional_text: str | None = None

    @property
    def has_code(self) -> bool:
        return bool(self.code.strip())


@dataclass(frozen=True)
class Rule:
    slug: str
    title: str
    impact: str
    explanation: str
    examples: tuple[Example, ...] = ()
    impact_description: str | None = None
    references: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    section: int = 0
    subsection: int | None = None
    number: str | None = None

    @property
    def category(self) -> str:
        return self.slug.split("-", 1)[0]


@dataclass(frozen=True)
class ParsedRule:
    path: Path
    file_ref: str
    raw: str
    rule: Rule


@dataclass(frozen=True)
class Section:
    number: int
    title: str
    impact: str
    rules: tuple[Rule, ...]
    impact_description: str | None = None
    introduction: str | None = None


@dataclass(frozen=True)
class SkillMetadata:
    version: str = "1.0.0"
    organization: str = ""
    date: str = ""
    abstract: str = ""
    references: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompiledDocument:
    skill: str
    title: str
    metadata: SkillMetadata
    sections: tuple[Section, ...]

    @property
    def rule_count(self) -> int:
        return sum(len(section.rules) for section in self.sections)


@dataclass(frozen=True)
class Violation:
    file: str
    message: str
    kind: str
    rule_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def format(self) -> str:
        suffix = f" ({self.rule_id})" if self.rule_id else ""
        return f"{self.file}{suffix}: {self.message}"


@dataclass(frozen=True)
class NetworkSettings:
    timeout_seconds: float = 15.0
    retries: int = 2
    backoff_seconds: float = 0.3
    concurrency: int = 8
    user_agent: str = "skills-build/0.1"


@dataclass(frozen=True)
class BuildConfig:
    skills_root: str = "skills"
    skill_prefix: str = ""
    category_registry_path: str = "configs/category-registry.json"
    version_claim_registry_path: str = "configs/version-claim-registry.json"
    semantic_registry_path: str = "configs/semantic-invariant-registry.json"
    release_watch_registry_path: str = "configs/release-watch-registry.json"
    network: NetworkSettings = field(default_factory=NetworkSettings)


@dataclass(frozen=True)
class SectionInfo:
    title: str
    impact: str
    impact_description: str | None = None
    introduction: str | None = None


@dataclass(frozen=True)
class SubsectionMap:
    category: str
    rules: dict[str, int]


@dataclass(frozen=True)
class SkillLayout:
    skill: str
    title: str
    section_map: dict[str, int]
    sections: dict[int, SectionInfo] = field(default_factory=dict)
    subsection_map: SubsectionMap | None = None


@dataclass(frozen=True)
class PatternRule:
    pattern: str
    message: str
    flags: str = ""


@dataclass(frozen=True)
class PathRule:
    path_pattern: str
    requirements: tuple[PatternRule, ...] = ()
    prohibitions: tuple[PatternRule, ...] = ()


@dataclass(frozen=True)
class FileRule:
    file: str
    requirements: tuple[PatternRule, ...] = ()
    prohibitions: tuple[PatternRule, ...] = ()


@dataclass(frozen=True)
class VersionClaimRegistry:
    enforce_official_reference: bool
    version_claim_pattern: str
    official_reference_pattern: str
    content_path_pattern: str = r"^[^/]+/rules/(?!_)[^/]+\.md$"
    path_rules: tuple[PathRule, ...] = ()
    file_rules: tuple[FileRule, ...] = ()


@dataclass(frozen=True)
class ExampleAssertion:
    example_class: str
    required_tokens: tuple[str, ...]
    message: str


@dataclass(frozen=True)
class SemanticInvariant:
    target_file: str
    required_headings: tuple[str, ...] = ()
    required_phrases: tuple[str, ...] = ()
    example_assertions: tuple[ExampleAssertion, ...] = ()


@dataclass(frozen=True)
class ReleaseWatchCheck:
    id: str
    url: str
    version_pattern: str
    expected_latest: str
    description: str | None = None


@dataclass(frozen=True)
class UrlCheckResult:
    url: str
    ok: bool
    status: int | None = None
    note: str | None = None
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReleaseWatchResult:
    id: str
    url: str
    status: str
    message: str
    observed: str | None = None
    expected: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CheckSummary:
    check: str
    checked: int
    violations: tuple[Violation, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.violations

    def to_dict(self) -> dict[str, Any]:
        return {
            "check": self.check,
            "status": "PASSED" if self.ok else "FAILED",
            "checked": self.checked,
            "violation_count": len(self.violations),
            "details": self.details,
        }
