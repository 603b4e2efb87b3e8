"""
Shared plumbing for the per-category inventory builders.
"""

import logging
from typing import Any, Callable, Iterable, Optional, Tuple

from .collector import InventoryCollector
from .graph import InventoryGraph
from .models import BuildReport
from .secondary_index import SecondaryIndex

logger = logging.getLogger(__name__)


def record_identity(record: Any) -> str:
    """Best available identifier of a raw record, for diagnostics."""
    if isinstance(record, tuple):
        return '/'.join(record_identity(part) for part in record)
    if isinstance(record, dict):
        return str(record.get('id') or record.get('uri') or record.get('urn') or
                   record.get('name') or 'N/A')
    return str(record)


class BaseInventory:
    """Base class of the category builders."""

    def __init__(self, collector: InventoryCollector, graph: InventoryGraph, report: BuildReport,
                 index: Optional[SecondaryIndex] = None):
        """Initialize the builder.

        Args:
            collector: Source of raw records
            graph: Graph whose collections are populated
            report: Run report receiving skipped records and diagnostics
            index: Stack resource secondary index of the current run
        """
        self.collector = collector
        self.graph = graph
        self.report = report
        self.index = index

    def build_each(self, category: str, records: Iterable[Any], build: Callable[[Any], Any]) -> int:
        """Build every record, isolating failures to the offending record.

        A record that raises is skipped: entities it created or updated and
        the index entries it wrote are rolled back, and a SkippedRecord is
        added to the report.

        Returns:
            Number of records that built successfully
        """
        built = 0
        for record in records:
            savepoint = self.savepoint()
            try:
                if build(record) is not None:
                    built += 1
            except Exception as e:
                self.rollback(savepoint)
                identity = record_identity(record)
                logger.warning(f"Skipping malformed {category} record {identity}: {str(e)}")
                self.report.skip(category, identity, f"malformed record: {str(e)}")
        return built

    def savepoint(self) -> Tuple[Any, Optional[int]]:
        index_savepoint = self.index.savepoint() if self.index is not None else None
        return self.graph.savepoint(), index_savepoint

    def rollback(self, savepoint: Tuple[Any, Optional[int]]) -> None:
        graph_savepoint, index_savepoint = savepoint
        self.graph.rollback(graph_savepoint)
        if self.index is not None:
            self.index.rollback(index_savepoint)

    def fetch(self, category: str, identity: str, fetch: Callable[[], Any]) -> Any:
        """Run a collector point lookup; a failure becomes a diagnostic and None."""
        try:
            return fetch()
        except Exception as e:
            logger.warning(f"Lookup failed for {category} {identity}: {str(e)}")
            self.report.diagnose(category, identity, f"lookup failed: {str(e)}")
            return None
