"""Schema migrations for the document store."""

import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Tuple

from ..common.errors import DatabaseError
from .database import DatabaseConnection

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent / "schema"


class MigrationRunner:
    """
    Applies numbered ``NNN_description.sql`` files in order.

    Each file records its own version in ``schema_version`` and runs inside a
    single transaction, so a failed migration leaves the previous version intact.
    Running it again is a no-op once the latest version is applied.
    """

    def __init__(self, db: DatabaseConnection, schema_dir: Path = SCHEMA_DIR):
        self.db = db
        self.schema_dir = schema_dir

    def get_current_version(self) -> int:
        """Current schema version (0 when schema_version doesn't exist yet)."""
        try:
            row = self.db.fetch_one("SELECT MAX(version) AS version FROM schema_version")
        except sqlite3.OperationalError:
            return 0
        if row and row["version"] is not None:
            return row["version"]
        return 0

    def _get_available_migrations(self) -> List[Tuple[int, Path]]:
        migrations = []

        if not self.schema_dir.exists():
            logger.warning(f"Schema directory not found: {self.schema_dir}")
            return migrations

        for sql_file in self.schema_dir.glob("*.sql"):
            try:
                migrations.append((int(sql_file.stem.split("_")[0]), sql_file))
            except ValueError:
                logger.warning(f"Skipping invalid migration file: {sql_file.name}")

        migrations.sort(key=lambda m: m[0])
        return migrations

    def apply_migrations(self, target_version: Optional[int] = None) -> int:
        """
        Apply pending migrations up to target_version (latest when None).

        Returns:
            Number of migrations applied

        Raises:
            DatabaseError: If a migration fails
        """
        current = self.get_current_version()
        available = self._get_available_migrations()
        if not available:
            logger.info("No migrations found")
            return 0

        if target_version is None:
            target_version = available[-1][0]

        pending = [(v, p) for v, p in available if current < v <= target_version]
        if not pending:
            logger.debug(f"Schema up to date {{'version': {current}}}")
            return 0

        for version, path in pending:
            self._apply_migration(version, path)

        logger.info(f"Migrated schema {{'from': {current}, 'to': {target_version}, 'applied': {len(pending)}}}")
        return len(pending)

    def _apply_migration(self, version: int, migration_path: Path) -> None:
        logger.info(f"Applying migration {version}: {migration_path.name}")
        sql = migration_path.read_text(encoding="utf-8")

        try:
            self.db.run_script(sql)
        except sqlite3.Error as e:
            logger.error(f"Failed to apply migration {version}: {e}")
            raise DatabaseError(
                f"Migration {migration_path.name} failed: {e}", version=version
            ) from e
