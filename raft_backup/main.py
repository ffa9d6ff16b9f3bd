"""
Vault Raft backup - Main entry point.

Takes one Raft snapshot of a Vault cluster, stages it locally, uploads it to
S3 and exits. Intended to be run by an external scheduler (cron, a
Kubernetes CronJob, a systemd timer).

Usage:
    vault-raft-backup [-v]
    python -m raft_backup

Configuration is entirely via environment variables.
See config.py for all available settings.

Exit status:
    0 - snapshot uploaded; the location is printed to stdout
    1 - configuration invalid or any stage failed; the failing stage is
        printed to stderr

Invariants:
    - Configuration is loaded once here and passed down
    - This is the only place that decides the process exit status
"""

from __future__ import annotations

import argparse
import logging
import sys

import json_log_formatter

from . import __version__
from .config import BackupConfig, ObservabilityConfig
from .errors import ConfigurationError
from .pipeline import BackupPipeline

logger = logging.getLogger(__name__)


def setup_logging(config: ObservabilityConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: Observability configuration
        verbose: Force DEBUG level
    """
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-raft-backup",
        description="Snapshot Vault integrated storage (Raft) and upload it to S3",
        epilog="All settings are read from environment variables (VAULT_ADDR, VAULT_TOKEN, "
        "VAULT_SNAPSHOT_PATH, VAULT_SKIP_VERIFY, S3_BUCKET, S3_PREFIX, AWS_REGION, ...).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    # Load configuration
    try:
        config = BackupConfig.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config.observability, verbose=args.verbose)
    config.log_config()

    result = BackupPipeline(config).run()

    if result.success:
        location = result.location
        print(f"Vault Raft snapshot uploaded to {location.s3_uri} ({location.url})")
        sys.exit(0)
    else:
        print(f"Vault Raft backup failed at {result.stage} stage: {result.error}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
