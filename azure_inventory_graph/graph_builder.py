"""
Graph Builder Module for Azure Inventory Graph.

This module runs the per-category builders in dependency order against one
collector and resolves the lazy references they leave behind.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional, Any

from .collector import InventoryCollector
from .database_inventory import DatabaseInventory
from .graph import InventoryGraph
from .image_inventory import ImageInventory
from .models import BuildReport, InventoryResult
from .provider_inventory import ProviderInventory
from .resolver import ReferenceResolver
from .secondary_index import SecondaryIndex
from .stack_inventory import StackInventory
from .tag_mapper import TagMapper
from .vm_inventory import VMInventory

logger = logging.getLogger(__name__)


class GraphBuilder:
    """Builds a fully resolved inventory graph from one collector."""

    def __init__(self, collector: InventoryCollector, tag_mapper: Optional[TagMapper] = None,
                 prefetch_workers: int = 3):
        """Initialize the graph builder.

        Args:
            collector: Source of raw Azure records
            tag_mapper: Label to tag mapping service (optional)
            prefetch_workers: Threads used to fetch the independent listings; 0 fetches sequentially
        """
        self.collector = collector
        self.tag_mapper = tag_mapper or TagMapper()
        self.prefetch_workers = prefetch_workers

    def _listing(self, name: str, fetch, report: BuildReport) -> List[Dict[str, Any]]:
        try:
            return fetch() or []
        except Exception as e:
            logger.error(f"Error listing {name}: {str(e)}")
            report.diagnose(name, 'listing', f"listing failed: {str(e)}")
            return []

    def prefetch_independent(self, report: BuildReport) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch resource groups, flavors and zones, concurrently if enabled."""
        listings = {
            'resource_groups': self.collector.resource_groups,
            'flavors': self.collector.flavors,
            'availability_zones': self.collector.availability_zones,
        }
        if not self.prefetch_workers:
            return {name: self._listing(name, fetch, report) for name, fetch in listings.items()}

        with ThreadPoolExecutor(max_workers=self.prefetch_workers) as executor:
            futures = {
                name: executor.submit(self._listing, name, fetch, report)
                for name, fetch in listings.items()
            }
            return {name: future.result() for name, future in futures.items()}

    def _run(self, category: str, routine, report: BuildReport) -> None:
        try:
            routine()
        except Exception as e:
            logger.error(f"Error building {category}: {str(e)}")
            report.diagnose(category, 'routine', f"routine failed: {str(e)}")

    def build(self) -> InventoryResult:
        """Build the graph.

        Returns:
            InventoryResult with the resolved graph and the run report
        """
        log_header = f"Collecting data for subscription: [{self.collector.subscription_id}]"
        logger.info(f"{log_header}...")

        graph = InventoryGraph()
        report = BuildReport()
        # Construction-time only; dropped when the build returns
        index = SecondaryIndex()

        providers = ProviderInventory(self.collector, graph, report)
        stacks = StackInventory(self.collector, graph, report, index)
        vms = VMInventory(self.collector, graph, report, index, tag_mapper=self.tag_mapper)
        images = ImageInventory(self.collector, graph, report)
        databases = DatabaseInventory(self.collector, graph, report)

        listings = self.prefetch_independent(report)
        providers.build_resource_groups(listings['resource_groups'])
        providers.build_flavors(listings['flavors'])
        providers.build_availability_zones(listings['availability_zones'])

        self._run('orchestration_stacks', stacks.build_stacks, report)
        self._run('orchestration_templates', stacks.build_stack_templates, report)
        self._run('vms_and_templates', vms.build_instances, report)
        self._run('vms_and_templates', images.build_managed_images, report)
        if self.collector.options.get_private_images:
            self._run('vms_and_templates', images.build_images, report)
        if self.collector.options.get_market_images:
            self._run('vms_and_templates', images.build_market_images, report)
        self._run('cloud_databases', databases.build_cloud_databases, report)

        report.resolved_references, report.absent_references = ReferenceResolver(graph).resolve()
        report.counts = graph.counts()
        report.finished_at = datetime.now()

        logger.info(
            f"{log_header}...Complete: {sum(report.counts.values())} entities, "
            f"{len(report.skipped)} skipped records, {len(report.diagnostics)} diagnostics"
        )
        return InventoryResult(graph=graph, report=report)
