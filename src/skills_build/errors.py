from __future__ import annotations


class SkillsBuildError(Exception):
    pass


class ParseError(SkillsBuildError, ValueError):
    pass


class ConfigError(SkillsBuildError, ValueError):
    pass


class RegistryError(ConfigError):
    pass


class AssemblyError(SkillsBuildError):
    pass


class HttpError(SkillsBuildError, RuntimeError):
    pass
