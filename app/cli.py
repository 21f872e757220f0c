"""Command-line runner for the deployment risk scorer.

Usage:
    python -m app assess --repo https://github.com/acme/shop --pr 42
    python -m app assess --patch change.diff --critical-paths src/payments,src/auth
    python -m app assess --files 12 --additions 340 --deletions 80 --paths src/api/app.py
    python -m app assess --synthetic --seed 7 --format markdown
    python -m app validate --environment staging --version 1.4.0 --port 8443 --enable-ssl true
    python -m app repo-info --repo https://github.com/acme/shop --include-collaborators

Exit codes: 0 success, 1 error, 2 critical risk (deployment should halt).
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from app.agents.risk_engine import RiskEngine
from app.config import settings
from app.models.risk import ScoringConfig
from app.services.github_service import GitHubService
from app.services.input_validation import validate_deployment_inputs
from app.services.metrics_provider import (
    GitHubMetricsProvider,
    MetricsProvider,
    PatchFileMetricsProvider,
    StaticMetricsProvider,
    SyntheticMetricsProvider,
)
from app.services.reporting import assessment_outputs, render_summary, write_outputs, write_summary
from app.services.service_errors import ServiceError
from app.utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CRITICAL = 2


def _split_paths(value: Optional[str]) -> List[str]:
    return [p.strip() for p in (value or "").split(",") if p.strip()]


def _build_provider(args: argparse.Namespace) -> MetricsProvider:
    if args.repo or args.pr is not None:
        if not (args.repo and args.pr is not None):
            raise ServiceError("--repo and --pr must be given together", status_code=400, code="invalid_arguments")
        return GitHubMetricsProvider(GitHubService(), args.repo, args.pr, args.token)
    if args.patch:
        return PatchFileMetricsProvider(args.patch)
    if args.synthetic:
        return SyntheticMetricsProvider(seed=args.seed)
    return StaticMetricsProvider(
        files_changed=args.files,
        additions=args.additions,
        deletions=args.deletions,
        changed_paths=_split_paths(args.paths),
    )


def _cmd_assess(args: argparse.Namespace) -> int:
    config = ScoringConfig.build(
        files_changed_threshold=args.files_threshold,
        lines_changed_threshold=args.lines_threshold,
        critical_paths=args.critical_paths,
        base=ScoringConfig.from_settings(settings),
    )
    engine = RiskEngine(config)
    change_set = _build_provider(args).fetch()

    allow_synthetic = args.synthetic or settings.allow_synthetic_metrics
    missing = sorted(key for key, value in change_set.totals().items() if value is None)
    if missing and not allow_synthetic:
        raise ServiceError(
            f"Change metrics incomplete: missing {', '.join(missing)} (pass --synthetic to use demo values)",
            status_code=400,
            code="incomplete_metrics",
        )

    assessment = engine.assess_change_set(change_set, fallback=SyntheticMetricsProvider(seed=args.seed))
    outputs = assessment_outputs(assessment)

    if args.format == "markdown":
        print(render_summary(assessment), end="")
    else:
        print(json.dumps({**outputs, "analysis": assessment.analysis()}, indent=2))

    output_path = args.github_output or os.getenv("GITHUB_OUTPUT")
    if output_path:
        write_outputs(outputs, output_path)
    summary_path = args.step_summary or os.getenv("GITHUB_STEP_SUMMARY")
    if summary_path:
        write_summary(render_summary(assessment), summary_path)

    if assessment.blocked and args.fail_on_critical:
        logger.error("Critical deployment risk, halting", extra={"score": assessment.score})
        return EXIT_CRITICAL
    return EXIT_OK


def _cmd_validate(args: argparse.Namespace) -> int:
    config = validate_deployment_inputs(args.environment, args.version, args.port, args.enable_ssl)
    payload = config.model_dump(mode="json")
    print(json.dumps(payload, indent=2))

    output_path = args.github_output or os.getenv("GITHUB_OUTPUT")
    if output_path:
        write_outputs({"validated": "true", "config": json.dumps(payload)}, output_path)
    return EXIT_OK


def _cmd_repo_info(args: argparse.Namespace) -> int:
    info = GitHubService().fetch_repo_info(args.repo, args.token, args.include_collaborators)
    print(json.dumps(info, indent=2))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deploy-risk", description="Deployment risk scoring")
    parser.add_argument("--log-level", default="", help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    assess = sub.add_parser("assess", help="Score the risk of a change set")
    source = assess.add_argument_group("metrics source")
    source.add_argument("--repo", help="GitHub repository URL")
    source.add_argument("--pr", type=int, help="Pull request number")
    source.add_argument("--token", default=None, help="GitHub token (defaults to GITHUB_TOKEN)")
    source.add_argument("--patch", help="Unified diff file")
    source.add_argument("--files", type=int, help="Files changed")
    source.add_argument("--additions", type=int, help="Lines added")
    source.add_argument("--deletions", type=int, help="Lines deleted")
    source.add_argument("--paths", help="Comma-separated changed file paths")
    source.add_argument("--synthetic", action="store_true", help="Use bounded random demo metrics")
    source.add_argument("--seed", type=int, default=None, help="Seed for synthetic metrics")
    scoring = assess.add_argument_group("scoring")
    scoring.add_argument("--files-threshold", type=int, default=None)
    scoring.add_argument("--lines-threshold", type=int, default=None)
    scoring.add_argument("--critical-paths", default=None, help="Comma-separated path prefixes")
    assess.add_argument("--format", choices=["json", "markdown"], default="json")
    assess.add_argument("--github-output", default=None, help="Step outputs file (defaults to GITHUB_OUTPUT)")
    assess.add_argument("--step-summary", default=None, help="Job summary file (defaults to GITHUB_STEP_SUMMARY)")
    assess.add_argument("--no-fail-on-critical", dest="fail_on_critical", action="store_false")
    assess.set_defaults(func=_cmd_assess)

    validate = sub.add_parser("validate", help="Validate deployment inputs")
    validate.add_argument("--environment", required=True)
    validate.add_argument("--version", required=True)
    validate.add_argument("--port", default="8080")
    validate.add_argument("--enable-ssl", default="true")
    validate.add_argument("--github-output", default=None)
    validate.set_defaults(func=_cmd_validate)

    repo_info = sub.add_parser("repo-info", help="Show GitHub repository info")
    repo_info.add_argument("--repo", required=True)
    repo_info.add_argument("--token", default=None)
    repo_info.add_argument("--include-collaborators", action="store_true")
    repo_info.set_defaults(func=_cmd_repo_info)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    try:
        return args.func(args)
    except ServiceError as exc:
        logger.error("Command failed", extra={"error": exc.message, "code": exc.code, "errors": exc.errors})
        print(f"error: {exc.message}", file=sys.stderr)
        for detail in exc.errors:
            print(f"  - {detail}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
