"""
Collector interface for Azure Inventory Graph.

A collector supplies raw Azure records (dicts in the JSON shape printed by the
``az`` CLI) to the graph builder: one listing per entity category plus a few
point lookups. This module defines the interface, the collector options and a
collector that replays a previously captured JSON snapshot.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .utils import dig, resource_group_ems_ref

logger = logging.getLogger(__name__)

DEFAULT_AVAILABILITY_ZONES = [{'id': 'default', 'name': 'default'}]


@dataclass
class CollectorOptions:
    """Switches controlling optional, expensive collection steps."""
    get_private_images: bool = False
    get_market_images: bool = False
    get_unmanaged_disk_space: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'CollectorOptions':
        data = data or {}
        return cls(
            get_private_images=bool(data.get('get_private_images', False)),
            get_market_images=bool(data.get('get_market_images', False)),
            get_unmanaged_disk_space=bool(data.get('get_unmanaged_disk_space', False))
        )


def build_stack_resources_cache(previous_graph: Optional[Dict[str, List[Dict[str, Any]]]],
                                deployments: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Derive cached stack resources from a previously exported graph.

    A deployment counts as unchanged when the previous stack's finish time and
    status equal its current timestamp and provisioning state. Only unchanged
    deployments get a cache entry.

    Args:
        previous_graph: Output of InventoryGraph.to_dict() from an earlier run
        deployments: Current raw deployment records

    Returns:
        Dictionary of lower-cased deployment id to resource attribute dicts
    """
    if not previous_graph:
        return {}

    previous_stacks = {
        str(stack.get('ems_ref', '')).lower(): stack
        for stack in previous_graph.get('orchestration_stacks', [])
    }
    resources_by_stack: Dict[str, List[Dict[str, Any]]] = {}
    for resource in previous_graph.get('orchestration_stacks_resources', []):
        stack_ref = str(resource.get('stack') or '').lower()
        attributes = {name: value for name, value in resource.items() if name != 'stack'}
        resources_by_stack.setdefault(stack_ref, []).append(attributes)

    cache = {}
    for deployment in deployments:
        uid = str(deployment.get('id', '')).lower()
        previous = previous_stacks.get(uid)
        if previous is None:
            continue
        unchanged = (
            previous.get('finish_time') == dig(deployment, 'properties', 'timestamp') and
            previous.get('status') == dig(deployment, 'properties', 'provisioningState')
        )
        if unchanged:
            cache[uid] = resources_by_stack.get(uid, [])

    logger.info(f"Reusing cached resources for {len(cache)} unchanged deployments")
    return cache


class InventoryCollector:
    """Source of raw Azure inventory records."""

    def __init__(self, subscription_id: Optional[str] = None, provider_region: Optional[str] = None,
                 options: Optional[CollectorOptions] = None,
                 previous_graph: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        """Initialize the collector.

        Args:
            subscription_id: Azure subscription id
            provider_region: Region used for sizes, images and template locations
            options: Optional collection switches
            previous_graph: Exported graph of an earlier run, used for the stack resource cache
        """
        self.subscription_id = subscription_id
        self.provider_region = provider_region
        self.options = options or CollectorOptions()
        self.previous_graph = previous_graph
        self._stacks_resources_cache = None

    @property
    def stacks_resources_cache(self) -> Dict[str, List[Dict[str, Any]]]:
        if self._stacks_resources_cache is None:
            self._stacks_resources_cache = build_stack_resources_cache(self.previous_graph, self.stacks())
        return self._stacks_resources_cache

    # Listings

    def resource_groups(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def flavors(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def availability_zones(self) -> List[Dict[str, Any]]:
        return list(DEFAULT_AVAILABILITY_ZONES)

    def stacks(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def stack_templates(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def instances(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def managed_images(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def market_images(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def images(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def mariadb_databases(self) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
        raise NotImplementedError

    def mysql_databases(self) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
        raise NotImplementedError

    def postgresql_databases(self) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
        raise NotImplementedError

    def sql_databases(self) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
        raise NotImplementedError

    # Point lookups

    def stack_resources(self, deployment: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def instance_network_ports(self, instance: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def instance_floating_ip(self, public_ip: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def instance_managed_disk(self, disk_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def instance_storage_accounts(self, storage_name: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def instance_account_keys(self, storage_account: Dict[str, Any]) -> Dict[str, str]:
        raise NotImplementedError

    def blob_properties(self, storage_account: Dict[str, Any], container_name: str,
                        blob_name: str, storage_key: Optional[str]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    # Record helpers shared by all collectors

    def get_resource_group_ems_ref(self, record: Dict[str, Any]) -> Optional[str]:
        """Resource group ems_ref of any resource record, None if unknown."""
        resource_group = record.get('resourceGroup')
        if not resource_group:
            parts = str(record.get('id', '')).split('/')
            lowered = [part.lower() for part in parts]
            if 'resourcegroups' not in lowered:
                return None
            position = lowered.index('resourcegroups') + 1
            if position >= len(parts):
                return None
            resource_group = parts[position]
        return resource_group_ems_ref(self.subscription_id, resource_group)

    def parent_ems_ref(self, instance: Dict[str, Any]) -> Optional[str]:
        """ems_ref of the image an instance was deployed from, if any."""
        image_id = dig(instance, 'storageProfile', 'imageReference', 'id')
        if image_id:
            return image_id.lower()
        image_uri = dig(instance, 'storageProfile', 'osDisk', 'image', 'uri')
        if image_uri:
            return image_uri.lower()
        return None

    def power_status(self, instance: Dict[str, Any]) -> Optional[str]:
        """Display power state of an instance, e.g. 'VM running'."""
        status = instance.get('powerState')
        if status:
            return status
        for entry in dig(instance, 'instanceView', 'statuses', default=[]):
            if str(entry.get('code', '')).startswith('PowerState/'):
                return entry.get('displayStatus')
        return None


class SnapshotCollector(InventoryCollector):
    """Replays raw records captured in a JSON snapshot file.

    The snapshot is a dictionary with one list per listing (``resource_groups``,
    ``instances``, ...), database listings as lists of ``{"server", "database"}``
    pairs, and lookup tables: ``stack_resources`` keyed by deployment id,
    ``network_interfaces``, ``public_ips``, ``managed_disks`` and
    ``storage_accounts`` as lists of records with an ``id`` (or ``name`` for
    storage accounts), ``storage_account_keys`` keyed by account name and
    ``blobs`` keyed by ``account/container/blob``.
    """

    def __init__(self, snapshot: Dict[str, Any], options: Optional[CollectorOptions] = None,
                 previous_graph: Optional[Dict[str, List[Dict[str, Any]]]] = None,
                 stacks_resources_cache: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__(
            subscription_id=snapshot.get('subscription_id'),
            provider_region=snapshot.get('provider_region'),
            options=options or CollectorOptions.from_dict(snapshot.get('options')),
            previous_graph=previous_graph
        )
        self.snapshot = snapshot
        if stacks_resources_cache is not None:
            self._stacks_resources_cache = {
                uid.lower(): resources for uid, resources in stacks_resources_cache.items()
            }
        self._network_interfaces = self._by_id('network_interfaces')
        self._public_ips = self._by_id('public_ips')
        self._managed_disks = self._by_id('managed_disks')
        self._stack_resources = {
            str(uid).lower(): operations for uid, operations in snapshot.get('stack_resources', {}).items()
        }
        self._storage_accounts = {
            str(account.get('name', '')).lower(): account
            for account in snapshot.get('storage_accounts', [])
        }

    @classmethod
    def from_file(cls, path: str, **kwargs) -> 'SnapshotCollector':
        with open(path, 'r') as snapshot_file:
            snapshot = json.load(snapshot_file)
        logger.info(f"Loaded inventory snapshot from {path}")
        return cls(snapshot, **kwargs)

    def _by_id(self, name: str) -> Dict[str, Dict[str, Any]]:
        return {str(record.get('id', '')).lower(): record for record in self.snapshot.get(name, [])}

    def _listing(self, name: str) -> List[Dict[str, Any]]:
        return list(self.snapshot.get(name, []))

    def _pairs(self, name: str) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
        return [(pair.get('server', {}), pair.get('database', {})) for pair in self.snapshot.get(name, [])]

    def resource_groups(self):
        return self._listing('resource_groups')

    def flavors(self):
        return self._listing('flavors')

    def availability_zones(self):
        return self.snapshot.get('availability_zones') or list(DEFAULT_AVAILABILITY_ZONES)

    def stacks(self):
        return self._listing('stacks')

    def stack_templates(self):
        return self._listing('stack_templates')

    def instances(self):
        return self._listing('instances')

    def managed_images(self):
        return self._listing('managed_images')

    def market_images(self):
        return self._listing('market_images')

    def images(self):
        return self._listing('images')

    def mariadb_databases(self):
        return self._pairs('mariadb_databases')

    def mysql_databases(self):
        return self._pairs('mysql_databases')

    def postgresql_databases(self):
        return self._pairs('postgresql_databases')

    def sql_databases(self):
        return self._pairs('sql_databases')

    def stack_resources(self, deployment):
        return list(self._stack_resources.get(str(deployment.get('id', '')).lower(), []))

    def instance_network_ports(self, instance):
        ports = []
        for reference in dig(instance, 'networkProfile', 'networkInterfaces', default=[]):
            port = self._network_interfaces.get(str(reference.get('id', '')).lower())
            if port is not None:
                ports.append(port)
        return ports

    def instance_floating_ip(self, public_ip):
        return self._public_ips.get(str(public_ip.get('id', '')).lower())

    def instance_managed_disk(self, disk_id):
        return self._managed_disks.get(str(disk_id).lower())

    def instance_storage_accounts(self, storage_name):
        return self._storage_accounts.get(str(storage_name).lower())

    def instance_account_keys(self, storage_account):
        keys = self.snapshot.get('storage_account_keys', {}).get(storage_account.get('name'), [])
        return {key.get('keyName'): key.get('value') for key in keys}

    def blob_properties(self, storage_account, container_name, blob_name, storage_key):
        path = f"{storage_account.get('name')}/{container_name}/{blob_name}"
        return self.snapshot.get('blobs', {}).get(path)
