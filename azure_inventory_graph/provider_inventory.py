"""
Provider Inventory Module for Azure Inventory Graph.

Builds the categories with no dependencies: resource groups, flavors (VM
sizes) and availability zones.
"""

import logging
from typing import Any, Dict, List, Optional

from .base_inventory import BaseInventory
from .utils import megabytes

logger = logging.getLogger(__name__)


class ProviderInventory(BaseInventory):
    """Builds resource groups, flavors and availability zones."""

    def build_resource_groups(self, records: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build resource groups.

        Args:
            records: Raw records from ``az group list`` (optional, listed from the collector if not given)
        """
        records = self.collector.resource_groups() if records is None else records
        self.build_each('resource_groups', records, self.build_resource_group)
        logger.info(f"Built {len(self.graph.resource_groups)} resource groups")

    def build_resource_group(self, resource_group: Dict[str, Any]):
        """Build one resource group keyed by its lower-cased ARM id.

        Returns:
            The resource group entity
        """
        return self.graph.resource_groups.build(
            ems_ref=resource_group['id'].lower(),
            name=resource_group['name'],
            location=resource_group.get('location')
        )

    def build_flavors(self, records: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build flavors.

        Args:
            records: Raw records from ``az vm list-sizes`` (optional, listed from the collector if not given)
        """
        records = self.collector.flavors() if records is None else records
        self.build_each('flavors', records, self.build_flavor)
        logger.info(f"Built {len(self.graph.flavors)} flavors")

    def build_flavor(self, flavor: Dict[str, Any]):
        """Build a flavor from an ``az vm list-sizes`` record; sizes become bytes.

        Returns:
            The flavor entity
        """
        name = flavor['name']
        return self.graph.flavors.build(
            ems_ref=name.lower(),
            name=name,
            cpu_total_cores=int(flavor.get('numberOfCores') or 0),
            memory=megabytes(flavor.get('memoryInMb') or 0),
            root_disk_size=megabytes(flavor.get('osDiskSizeInMb') or 0),
            swap_disk_size=megabytes(flavor.get('resourceDiskSizeInMb') or 0),
            enabled=True
        )

    def build_availability_zones(self, records: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build availability zones.

        Args:
            records: Zone records with ``id`` and ``name`` (optional, listed from the collector if not given)
        """
        records = self.collector.availability_zones() if records is None else records
        self.build_each('availability_zones', records, self.build_availability_zone)
        logger.info(f"Built {len(self.graph.availability_zones)} availability zones")

    def build_availability_zone(self, zone: Dict[str, Any]):
        return self.graph.availability_zones.build(
            ems_ref=zone['id'].lower(),
            name=zone.get('name')
        )
