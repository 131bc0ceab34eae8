"""Wiring of stores, manager and sweeper from configuration."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from .analysis.enrichment import EnrichmentClient
from .analysis.insights import InsightService
from .config import VaultConfig
from .lifecycle.database import DatabaseConnection
from .lifecycle.manager import BackupLifecycleManager
from .lifecycle.migrations import MigrationRunner
from .lifecycle.retention import RetentionSweeper
from .lifecycle.storage import LocalObjectStore

logger = logging.getLogger(__name__)


@dataclass
class VaultServices:
    config: VaultConfig
    db: DatabaseConnection
    store: LocalObjectStore
    manager: BackupLifecycleManager
    sweeper: RetentionSweeper

    def close(self) -> None:
        self.db.close()


def build_services(config: VaultConfig, transport: Optional[httpx.BaseTransport] = None) -> VaultServices:
    """Open the document store (migrating it) and build the lifecycle services."""
    db = DatabaseConnection(Path(config.storage.database_path))
    MigrationRunner(db).apply_migrations()

    store = LocalObjectStore(config.storage.object_store_path)
    client = EnrichmentClient.from_config(config.insights, transport=transport)
    insights = InsightService(config.insights, client)

    logger.debug(f"Built services {{'enrichment': {client is not None}}}")
    return VaultServices(
        config=config,
        db=db,
        store=store,
        manager=BackupLifecycleManager(db, store, config, insights),
        sweeper=RetentionSweeper(db, store),
    )
