"""Command line entry point.

Keeps the newest N images of every repository in a Docker registry and
deletes the manifests of the rest. Disk space is only reclaimed once the
registry's garbage collector runs afterwards.
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

import structlog

from .client import RegistryClient
from .config import Config, ConfigError
from .errors import RegistryError
from .events import LogSink
from .orchestrator import Cleaner

LOG_LEVELS = ("debug", "info", "warning", "error")
LOG_FORMATS = ("console", "json")


def configure_logging(level: str = "info", fmt: str = "console") -> None:
    """Configure structlog with ISO timestamps and a console or JSON renderer."""
    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def build_parser(defaults: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="registry-retention",
        description="Keep the newest images of every registry repository, delete the rest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  REGISTRY_URL, REGISTRY_USERNAME, REGISTRY_PASSWORD, KEEP_LAST, DRY_RUN,
  STRICT, HALT_ON_DELETE_UNSUPPORTED, REPOSITORIES, LOG_LEVEL, LOG_FORMAT

Examples:
  %(prog)s --dry-run
  %(prog)s --keep-last 5 --repository app --repository tools
  %(prog)s --strict --log-format json
        """,
    )
    parser.add_argument(
        "--registry-url",
        help=f"Registry URL (default: {defaults.registry_url})",
    )
    parser.add_argument(
        "--username",
        help="Registry username; the password is read from REGISTRY_PASSWORD",
    )
    parser.add_argument(
        "--keep-last",
        type=int,
        help=f"Images to keep per repository, 0 deletes all (default: {defaults.keep_last})",
    )
    parser.add_argument(
        "--repository",
        action="append",
        dest="repositories",
        metavar="NAME",
        help="Only clean this repository (repeatable)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Show what would be deleted without actually deleting",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Exit non-zero when any deletion or repository failed",
    )
    parser.add_argument(
        "--halt-on-delete-unsupported",
        action="store_true",
        default=None,
        help="Stop issuing deletes after the registry first answers 405",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS)
    parser.add_argument("--log-format", choices=LOG_FORMATS)
    return parser


def load_config(argv: Optional[Sequence[str]] = None, environ=None) -> Config:
    """Merge environment configuration with command line flags."""
    try:
        defaults = Config.from_env(environ)
    except ConfigError as e:
        build_parser(Config()).error(str(e))

    parser = build_parser(defaults)
    args = parser.parse_args(argv)
    config = defaults.with_overrides(
        registry_url=args.registry_url,
        username=args.username,
        keep_last=args.keep_last,
        repositories=tuple(args.repositories) if args.repositories else None,
        dry_run=args.dry_run,
        strict=args.strict,
        halt_on_delete_unsupported=args.halt_on_delete_unsupported,
        log_level=args.log_level,
        log_format=args.log_format,
    )
    if config.log_level not in LOG_LEVELS:
        parser.error(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
    if config.log_format not in LOG_FORMATS:
        parser.error(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}")
    return config


def run(config: Config, client: Optional[RegistryClient] = None) -> int:
    """Run a cleanup and map the outcome onto an exit code."""
    logger = structlog.get_logger("registry_retention")
    client = client or RegistryClient(config.endpoint)
    with client:
        cleaner = Cleaner(client, config, LogSink(logger))
        try:
            summary = cleaner.run()
        except RegistryError as e:
            logger.error("run_failed", registry_url=config.registry_url, error=str(e))
            return 1

    if config.strict and summary.has_failures:
        logger.error(
            "run_incomplete",
            failed=summary.failed,
            failed_repositories=summary.failed_repositories,
        )
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = load_config(argv)
    configure_logging(config.log_level, config.log_format)
    return run(config)


if __name__ == "__main__":
    sys.exit(main())
