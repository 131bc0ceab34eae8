"""One pass over an export archive: guard, locate, parse, normalize, aggregate."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .analysis.aggregator import Aggregator, AggregatedStats
from .config import VaultConfig
from .ingest.guard import ArchiveSafetyGuard
from .ingest.locator import ExportVersion, FileLocator, LocatedExport
from .ingest.normalizer import normalize_export
from .ingest.records import Entity

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything a run derives from one archive."""
    stats: AggregatedStats
    contains: Dict[str, bool]
    version: ExportVersion
    warnings: List[str] = field(default_factory=list)


class ExportPipeline:
    """Stateless runner; safe to share between backups."""

    def __init__(self, config: Optional[VaultConfig] = None):
        config = config or VaultConfig()
        self.guard = ArchiveSafetyGuard(config.limits)
        self.locator = FileLocator(config.limits.max_file_bytes)
        self.aggregator = Aggregator(config.aggregation)

    def open(self, data: bytes) -> LocatedExport:
        """Validate the archive and locate its entity files.

        Raises:
            ArchiveRejectedError: Archive failed a safety check
        """
        manifest = self.guard.ensure_valid(data)
        return self.locator.locate(manifest, data)

    def run(self, data: bytes) -> PipelineResult:
        """Run the full pipeline on raw archive bytes.

        Raises:
            ArchiveRejectedError: Archive failed a safety check
            ArchiveError: An entity file could not be read
        """
        result = self.guard.validate(data)
        manifest = result.raise_if_rejected()

        located = self.locator.locate(manifest, data)
        normalized = normalize_export(located)
        stats = self.aggregator.aggregate(normalized.records)

        missing = sorted(e.value for e in Entity if not normalized.records.get(e))
        if missing:
            logger.info(f"Export has no data for {{'entities': {missing}}}")

        return PipelineResult(
            stats=stats,
            contains=normalized.contains(),
            version=located.version,
            warnings=list(result.warnings),
        )

    def read_entity(self, data: bytes, entity: Entity) -> Optional[bytes]:
        """Return the raw bytes of one entity file after the same safety checks."""
        return self.open(data).read_bytes(entity)
