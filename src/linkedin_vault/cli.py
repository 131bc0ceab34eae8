"""Command line entry point for linkedin-vault."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from .analysis.insights import InsightService, InsightTier
from .analysis.enrichment import EnrichmentClient
from .common import ConfigLoader, VaultError, setup_logging_from_config
from .config import VaultConfig
from .pipeline import ExportPipeline
from .services import build_services

APP_NAME = "linkedin-vault"

logger = logging.getLogger(__package__ or __name__)


def _emit(document: Any) -> None:
    print(json.dumps(document, indent=2, default=str))


def analyze_command(config: VaultConfig, archive_path: Path, tier: InsightTier) -> int:
    """Run the pipeline on a local archive without storing anything."""
    if not archive_path.exists():
        logger.error(f"Archive does not exist: {{'path': {str(archive_path)!r}}}")
        return 1

    try:
        result = ExportPipeline(config).run(archive_path.read_bytes())
        insights = InsightService(config.insights, EnrichmentClient.from_config(config.insights))
        report = insights.generate(result.stats, tier)
    except VaultError as e:
        logger.error(f"Analysis failed: {e.message}")
        for reason in getattr(e, "reasons", []):
            logger.error(f"  {reason}")
        return 1

    _emit({
        "export_version": result.version.value,
        "contains": result.contains,
        "warnings": result.warnings,
        "stats": result.stats.to_dict(),
        "report": report.model_dump(mode="json"),
    })
    return 0


def submit_command(
    config: VaultConfig,
    archive_path: Path,
    user_id: str,
    org_id: Optional[str] = None,
    keep_raw_forever: bool = False,
) -> int:
    """Store an archive as a new pending backup."""
    if not archive_path.exists():
        logger.error(f"Archive does not exist: {{'path': {str(archive_path)!r}}}")
        return 1

    services = build_services(config)
    try:
        record = services.manager.create_backup(
            user_id,
            archive_path.read_bytes(),
            file_name=archive_path.name,
            org_id=org_id,
            keep_raw_forever=keep_raw_forever,
        )
        _emit(record.to_dict())
        return 0
    except VaultError as e:
        logger.error(f"Submit failed: {e.message}")
        return 1
    finally:
        services.close()


def process_command(config: VaultConfig, backup_id: str, user_id: str, tier: InsightTier) -> int:
    services = build_services(config)
    try:
        outcome = services.manager.process(backup_id, user_id, tier)
        _emit({
            "already_processed": outcome.already_processed,
            "backup": outcome.backup.to_dict(),
            "warnings": outcome.warnings,
        })
        return 0
    except VaultError as e:
        logger.error(f"Processing failed: {e.message}")
        return 1
    finally:
        services.close()


def status_command(config: VaultConfig, user_id: str, backup_id: Optional[str] = None) -> int:
    """Show one backup, or list the user's backups newest first."""
    services = build_services(config)
    try:
        if backup_id:
            _emit(services.manager.get_backup(backup_id, user_id).to_dict())
        else:
            _emit([b.to_dict() for b in services.manager.list_backups(user_id)])
        return 0
    except VaultError as e:
        logger.error(f"Status failed: {e.message}")
        return 1
    finally:
        services.close()


def sweep_command(config: VaultConfig) -> int:
    services = build_services(config)
    try:
        recovered = services.manager.recover_stale()
        summary = services.sweeper.sweep()
        _emit({"recovered_stale": recovered, **summary.to_dict()})
        return 1 if summary.errors else 0
    finally:
        services.close()


def serve_command(config: VaultConfig, host: Optional[str] = None, port: Optional[int] = None) -> int:
    import uvicorn

    from .api import create_app

    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.api.host,
        port=port or config.api.port,
        log_config=None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Back up LinkedIn data exports and derive network insights"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (defaults.toml)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    tier_choices = [t.value for t in InsightTier]

    analyze = subparsers.add_parser("analyze", help="Analyze a local export archive")
    analyze.add_argument("archive", type=Path)
    analyze.add_argument("--tier", choices=tier_choices, default=InsightTier.DETERMINISTIC.value)

    submit = subparsers.add_parser("submit", help="Store an export archive as a new backup")
    submit.add_argument("archive", type=Path)
    submit.add_argument("--user", required=True, help="Owner user id")
    submit.add_argument("--org", help="Organization id")
    submit.add_argument(
        "--keep-raw-forever",
        action="store_true",
        help="Never delete the raw archive on expiry"
    )

    process = subparsers.add_parser("process", help="Process a stored backup")
    process.add_argument("backup_id")
    process.add_argument("--user", required=True, help="Owner user id")
    process.add_argument("--tier", choices=tier_choices, default=InsightTier.DETERMINISTIC.value)

    status = subparsers.add_parser("status", help="Show backups for a user")
    status.add_argument("backup_id", nargs="?")
    status.add_argument("--user", required=True, help="Owner user id")

    subparsers.add_parser("sweep", help="Recover stale runs and delete expired artifacts")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (overrides config)")
    serve.add_argument("--port", type=int, help="Port (overrides config)")

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    loader = ConfigLoader(app_name=APP_NAME, config_class=VaultConfig)
    config = loader.load(defaults_path=args.config)

    setup_logging_from_config(config.logging)

    if args.command == "analyze":
        return analyze_command(config, args.archive, InsightTier(args.tier))
    if args.command == "submit":
        return submit_command(config, args.archive, args.user, args.org, args.keep_raw_forever)
    if args.command == "process":
        return process_command(config, args.backup_id, args.user, InsightTier(args.tier))
    if args.command == "status":
        return status_command(config, args.user, args.backup_id)
    if args.command == "sweep":
        return sweep_command(config)
    return serve_command(config, args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())
