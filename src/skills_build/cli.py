from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace

from skills_build import pipeline
from skills_build.config import load_config
from skills_build.errors import AssemblyError, ConfigError
from skills_build.models import BuildConfig, CheckSummary
from skills_build.reporting import build_summary, format_violations, write_report

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skills-build",
        description="Build and validate skill rule knowledge bases",
    )
    parser.add_argument("--config", default=None, help="Build config JSON path")
    parser.add_argument("--skills-root", default=None, help="Override the skills root directory")
    parser.add_argument("--report-dir", default=None, help="Write violations.json/.csv here")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_cmd = subparsers.add_parser("build", help="Compile one skill into AGENTS.md")
    build_cmd.add_argument("skill")

    extract_cmd = subparsers.add_parser("extract-tests", help="Write test-cases.json for one skill")
    extract_cmd.add_argument("skill")

    subparsers.add_parser("validate", help="Check rule structure across all skills")
    subparsers.add_parser("check-version-claims", help="Run the version-claim registry")
    subparsers.add_parser("check-semantic-invariants", help="Run the semantic-invariant registry")
    subparsers.add_parser("check-links", help="Probe every referenced URL")
    subparsers.add_parser("check-release-watch", help="Detect release-line drift")
    subparsers.add_parser("check-all", help="Run validation and every registry check")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args.config) if args.config else BuildConfig()
        if args.skills_root:
            config = replace(config, skills_root=args.skills_root)
        summaries = _run_command(args, config)
    except (ConfigError, AssemblyError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    payload = build_summary(summaries)
    if args.report_dir:
        payload["files"] = write_report(summaries, args.report_dir)
    print(json.dumps(payload, indent=2, ensure_ascii=True))

    failures = format_violations(summaries)
    for line in failures:
        print(line, file=sys.stderr)
    return EXIT_VIOLATIONS if failures else EXIT_OK


def _run_command(args: argparse.Namespace, config: BuildConfig) -> list[CheckSummary]:
    if args.command == "build":
        return [pipeline.run_build(config, args.skill)]
    if args.command == "extract-tests":
        return [pipeline.run_extract_tests(config, args.skill)]
    if args.command == "validate":
        return [pipeline.run_validate(config)]
    if args.command == "check-version-claims":
        return [pipeline.run_version_claims(config)]
    if args.command == "check-semantic-invariants":
        return [pipeline.run_semantic_invariants(config)]
    if args.command == "check-links":
        return [pipeline.run_link_check(config)]
    if args.command == "check-release-watch":
        return [pipeline.run_release_watch_check(config)]
    if args.command == "check-all":
        return pipeline.run_all(config)
    raise ConfigError(f"Unsupported command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
