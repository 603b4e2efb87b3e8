"""
Inventory graph container for Azure Inventory Graph.

The graph owns one InventoryCollection per entity category for a single
graph-build run.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from .collection import InventoryCollection
from .models import (
    ResourceGroup,
    Flavor,
    AvailabilityZone,
    VmOrTemplate,
    Hardware,
    OperatingSystem,
    Network,
    Disk,
    OrchestrationStack,
    OrchestrationStackResource,
    OrchestrationStackOutput,
    OrchestrationStackParameter,
    OrchestrationTemplate,
    CloudDatabase,
    VmOrTemplateLabel,
    VmOrTemplateTagging
)


# (name, model class, manager_ref) in persistence order
COLLECTION_DEFINITIONS = [
    ('resource_groups', ResourceGroup, ('ems_ref',)),
    ('flavors', Flavor, ('ems_ref',)),
    ('availability_zones', AvailabilityZone, ('ems_ref',)),
    ('orchestration_templates', OrchestrationTemplate, ('ems_ref',)),
    ('orchestration_stacks', OrchestrationStack, ('ems_ref',)),
    ('orchestration_stacks_resources', OrchestrationStackResource, ('stack', 'ems_ref')),
    ('orchestration_stacks_outputs', OrchestrationStackOutput, ('ems_ref',)),
    ('orchestration_stacks_parameters', OrchestrationStackParameter, ('ems_ref',)),
    ('vms_and_templates', VmOrTemplate, ('ems_ref',)),
    ('hardwares', Hardware, ('vm_or_template',)),
    ('operating_systems', OperatingSystem, ('vm_or_template',)),
    ('networks', Network, ('hardware', 'ipaddress')),
    ('disks', Disk, ('hardware', 'device_name')),
    ('cloud_databases', CloudDatabase, ('ems_ref',)),
    ('vm_and_template_labels', VmOrTemplateLabel, ('resource', 'name')),
    ('vm_and_template_taggings', VmOrTemplateTagging, ('taggable', 'tag')),
]


class InventoryGraph:
    """Named set of entity collections built during one run."""

    def __init__(self):
        self._collections: Dict[str, InventoryCollection] = {}
        for name, model_class, manager_ref in COLLECTION_DEFINITIONS:
            self._collections[name] = InventoryCollection(name, model_class, manager_ref)

    def __getattr__(self, name: str) -> InventoryCollection:
        collections = self.__dict__.get('_collections', {})
        if name in collections:
            return collections[name]
        raise AttributeError(f"{type(self).__name__} has no collection '{name}'")

    def __getitem__(self, name: str) -> InventoryCollection:
        return self._collections[name]

    def __contains__(self, name: str) -> bool:
        return name in self._collections

    def __iter__(self) -> Iterator[InventoryCollection]:
        return iter(self._collections.values())

    def get(self, name: str) -> Optional[InventoryCollection]:
        return self._collections.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._collections)

    def savepoint(self) -> Dict[str, Tuple[int, int]]:
        """Record the state of every collection so a failed record can be rolled back."""
        return {name: collection.savepoint() for name, collection in self._collections.items()}

    def rollback(self, savepoint: Dict[str, Tuple[int, int]]) -> None:
        """Undo entity creations and updates made since ``savepoint`` was taken."""
        for name, state in savepoint.items():
            self._collections[name].rollback(state)

    def counts(self) -> Dict[str, int]:
        return {name: len(collection) for name, collection in self._collections.items()}

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Convert to dictionary of category name to entity dictionaries."""
        return {
            name: [entity.to_dict() for entity in collection]
            for name, collection in self._collections.items()
        }
