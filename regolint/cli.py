"""CLI entrypoint for regolint."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import CONFIG_FILENAME, OUTPUT_FORMATS, RegolintConfig, load_config
from .errors import RegolintError
from .linter import Linter
from .logging import configure_logging, get_logger
from .output import render

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regolint",
        description="Lint Go sources against Rego policies.",
    )
    parser.add_argument("paths", nargs="*", help="Go files or directories to lint.")
    parser.add_argument(
        "--config",
        default=CONFIG_FILENAME,
        help=f"Path to the configuration file (defaults to {CONFIG_FILENAME}).",
    )
    parser.add_argument("--policy-dir", help="Directory containing .rego policy files.")
    parser.add_argument("--disabled", default="", help="Comma-separated rule IDs to disable.")
    parser.add_argument("--exclude", default="", help="Comma-separated file patterns to exclude.")
    parser.add_argument("--format", choices=OUTPUT_FORMATS, help="Output format.")
    parser.add_argument(
        "--package",
        action="store_true",
        help="Also evaluate package-level facts aggregated per directory.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the extracted facts as JSON without evaluating policies.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument("--log-file", type=Path, help="Also write debug logs to this file.")
    parser.add_argument("--version", action="store_true", help="Print the version and exit.")
    return parser


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _apply_overrides(config: RegolintConfig, args: argparse.Namespace) -> RegolintConfig:
    if args.policy_dir:
        config.policies.directory = str(Path(args.policy_dir).expanduser().resolve())
    config.rules.disabled.extend(_parse_list(args.disabled))
    config.exclude.extend(_parse_list(args.exclude))
    if args.format:
        config.output.format = args.format
    if args.verbose:
        config.output.verbose = True
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"regolint {__version__}")
        return EXIT_OK
    if not args.paths:
        parser.print_usage(sys.stderr)
        return EXIT_ERROR

    logger = configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = _apply_overrides(load_config(Path(args.config)), args)
        if config.output.verbose and not args.verbose:
            logger = configure_logging(verbose=True, log_file=args.log_file)
        linter = Linter(config)

        if args.dry_run:
            for path in linter.discover(args.paths):
                facts = linter.facts(path).to_dict()
                print(f"=== {path} ===\n{json.dumps(facts, indent=2)}\n")
            return EXIT_OK

        report = linter.lint_paths(args.paths, package_mode=bool(args.package))
    except RegolintError as exc:
        print(f"error: {exc}", file=sys.stderr)
        get_logger("cli").debug("Lint run failed", exc_info=True)
        return EXIT_ERROR

    logger.debug("Linted %d file(s)", len(report.files))
    if report.violations:
        sys.stdout.write(render(report.violations, config.output.format, version=__version__))
        return EXIT_VIOLATIONS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
