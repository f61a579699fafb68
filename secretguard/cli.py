"""Command-line entry point for the secretguard scanner."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List

from . import __version__
from .allowlist import load_allowlist
from .config import ScanConfig, load_config
from .engine import run_scan
from .errors import SecretGuardError
from .fallback import format_fallback_report, run_fallback_scan
from .policy import BlockMode
from .reporters import FORMATS, emit_report, format_summary_table, render
from .rules import default_registry, load_rule_file
from .severity import SEVERITY_ORDER, Severity
from .utils.logs import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BLOCKED = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secretguard",
        description="Scan a source tree for hardcoded secrets and gate deployments on the result.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    scan = subparsers.add_parser("scan", help="Scan a directory tree for secrets.")
    scan.add_argument("root", help="Directory to scan.")
    scan.add_argument(
        "--format",
        choices=FORMATS,
        default="text",
        help="Report format (defaults to text).",
    )
    scan.add_argument(
        "--out",
        "--output",
        dest="output_path",
        default=None,
        help="Path to write the report to instead of stdout (e.g., artifacts/secrets.sarif).",
    )
    scan.add_argument(
        "--block-mode",
        choices=[mode.value for mode in BlockMode],
        default=None,
        help="auto blocks on critical/high findings, always on any finding, never on nothing.",
    )
    scan.add_argument(
        "--block",
        dest="block_mode",
        action="store_const",
        const=BlockMode.ALWAYS.value,
        help="Shorthand for --block-mode always.",
    )
    scan.add_argument(
        "--min-severity",
        choices=[severity.value for severity in SEVERITY_ORDER],
        default=None,
        help="Hide findings below this severity (defaults to low).",
    )
    scan.add_argument("--allowlist", dest="allowlist_file", default=None, help="YAML/JSON allowlist file.")
    scan.add_argument("--rules", dest="rules_file", default=None, help="YAML/JSON file with additional rules.")
    scan.add_argument("--config", dest="config_file", default=None, help="YAML/JSON scan configuration file.")
    scan.add_argument(
        "--environment",
        "--env",
        dest="environment",
        default=None,
        help="Deployment environment, e.g. development or production.",
    )
    scan.add_argument("--workers", type=int, default=None, help="Number of scanning threads.")
    scan.add_argument(
        "--deadline",
        dest="deadline_seconds",
        type=float,
        default=None,
        help="Stop dispatching files after this many seconds and report a partial scan.",
    )
    scan.add_argument(
        "--exclude",
        dest="exclude",
        action="append",
        default=[],
        help="Glob of paths to skip, relative to ROOT (repeatable).",
    )
    scan.add_argument(
        "--fallback",
        action="store_true",
        help="Run the coarse ripgrep/grep scan instead of the full engine.",
    )
    verbosity = scan.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="count", default=0, help="Increase log output (repeatable).")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only log errors.")
    scan.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log line format on stderr.",
    )
    return parser


def build_config(args: argparse.Namespace) -> ScanConfig:
    """Merge the optional config file with command-line overrides."""

    config = load_config(args.config_file) if args.config_file else ScanConfig()
    overrides: Dict[str, Any] = {}
    if args.block_mode:
        overrides["block_mode"] = BlockMode.parse(args.block_mode)
    if args.min_severity:
        overrides["min_severity"] = Severity.parse(args.min_severity)
    if args.environment:
        overrides["environment"] = args.environment
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.deadline_seconds is not None:
        overrides["deadline_seconds"] = args.deadline_seconds
    if args.exclude:
        overrides["exclude_paths"] = tuple(config.exclude_paths) + tuple(args.exclude)
    if args.rules_file:
        overrides["rules_file"] = args.rules_file
    if args.allowlist_file:
        overrides["allowlist_file"] = args.allowlist_file
    return replace(config, **overrides) if overrides else config


def _log_level(args: argparse.Namespace) -> int:
    if args.quiet:
        return logging.ERROR
    if args.verbose >= 2:
        return logging.DEBUG
    if args.verbose == 1:
        return logging.INFO
    return logging.WARNING


def run_fallback(args: argparse.Namespace, config: ScanConfig) -> int:
    if args.format != "text":
        logger.warning("Fallback scan only produces a text report; ignoring --format %s", args.format)
    hits = run_fallback_scan(args.root)
    emit_report(format_fallback_report(hits), args.output_path, sys.stdout)
    if hits and config.block_mode is not BlockMode.NEVER:
        return EXIT_BLOCKED
    return EXIT_OK


def scan_command(args: argparse.Namespace) -> int:
    config = build_config(args)
    if args.fallback:
        return run_fallback(args, config)

    registry = load_rule_file(Path(config.rules_file)) if config.rules_file else default_registry()
    allowlist = load_allowlist(Path(config.allowlist_file)) if config.allowlist_file else []
    result = run_scan(args.root, config, registry=registry, allowlist=allowlist)

    written = emit_report(render(result, args.format), args.output_path, sys.stdout)
    if written is not None:
        print(format_summary_table(result))
        print(f"\nReport written to {written}")
    return result.exit_code()


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(_log_level(args), args.log_format)
    try:
        return scan_command(args)
    except (SecretGuardError, OSError) as exc:
        print(f"secretguard: error: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
