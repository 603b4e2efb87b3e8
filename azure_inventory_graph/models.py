"""
Data models for Azure Inventory Graph.

This module defines the entities built into the inventory graph, the pending
reference placeholder used for forward references, and the records that
describe the outcome of a graph-build run.
"""

from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Any, Tuple, Union
from datetime import datetime


@dataclass(frozen=True)
class LazyReference:
    """A pending foreign key: (collection name, normalized key).

    Stored inline in an entity attribute until the resolve pass replaces it
    with the referenced entity or None.
    """
    collection: str
    key: Optional[Union[str, Tuple]] = None


def _flatten(key) -> List[str]:
    if isinstance(key, tuple):
        parts = []
        for part in key:
            parts.extend(_flatten(part))
        return parts
    return [str(key)]


def reference_value(value: Any) -> Any:
    """Render an attribute value as a persistable foreign-key value."""
    if isinstance(value, InventoryObject):
        ems_ref = getattr(value, 'ems_ref', None)
        if ems_ref:
            return ems_ref
        if value.inventory_key is not None:
            return '/'.join(_flatten(value.inventory_key))
        return getattr(value, 'name', None)
    if isinstance(value, LazyReference):
        if value.key is None:
            return None
        return '/'.join(_flatten(value.key))
    return value


class InventoryObject:
    """Base class of every entity built into an InventoryCollection."""

    # Set by the owning collection when the entity is built
    inventory_key = None

    def assign_attributes(self, **attributes) -> 'InventoryObject':
        for name, value in attributes.items():
            if name not in self.__dataclass_fields__:
                raise ValueError(f"{type(self).__name__} has no attribute '{name}'")
            setattr(self, name, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, with references rendered as foreign keys."""
        return {f.name: reference_value(getattr(self, f.name)) for f in fields(self)}


@dataclass(eq=False)
class ResourceGroup(InventoryObject):
    """An Azure resource group."""
    ems_ref: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None


@dataclass(eq=False)
class Flavor(InventoryObject):
    """An Azure VM size. Memory and disk sizes are in bytes."""
    ems_ref: Optional[str] = None
    name: Optional[str] = None
    cpu_total_cores: int = 0
    memory: int = 0
    root_disk_size: int = 0
    swap_disk_size: int = 0
    enabled: bool = True


@dataclass(eq=False)
class AvailabilityZone(InventoryObject):
    ems_ref: Optional[str] = None
    name: Optional[str] = None


@dataclass(eq=False)
class VmOrTemplate(InventoryObject):
    """A VM instance, or an image when ``template`` is True."""
    ems_ref: Optional[str] = None
    uid_ems: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    vendor: str = "azure"
    connection_state: str = "connected"
    raw_power_state: Optional[str] = None
    template: bool = False
    publicly_available: Optional[bool] = None
    location: Optional[str] = None
    flavor: Any = None
    availability_zone: Any = None
    resource_group: Any = None
    genealogy_parent: Any = None
    orchestration_stack: Any = None


@dataclass(eq=False)
class Hardware(InventoryObject):
    vm_or_template: Any = None
    cpu_total_cores: Optional[int] = None
    memory_mb: Optional[int] = None
    disk_capacity: Optional[int] = None
    bitness: Optional[int] = None
    guest_os: Optional[str] = None


@dataclass(eq=False)
class OperatingSystem(InventoryObject):
    vm_or_template: Any = None
    product_name: Optional[str] = None


@dataclass(eq=False)
class Network(InventoryObject):
    """An IP address attached to a VM; description is 'private' or 'public'."""
    hardware: Any = None
    description: Optional[str] = None
    ipaddress: Optional[str] = None
    hostname: Optional[str] = None


@dataclass(eq=False)
class Disk(InventoryObject):
    """A VM disk. Size is None when the backing storage could not be queried."""
    hardware: Any = None
    device_name: Optional[str] = None
    device_type: str = "disk"
    controller_type: str = "azure"
    location: Optional[str] = None
    size: Optional[int] = None
    disk_type: Optional[str] = None
    mode: Optional[str] = None


@dataclass(eq=False)
class OrchestrationStack(InventoryObject):
    """An ARM deployment."""
    ems_ref: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    finish_time: Optional[str] = None
    resource_group: Any = None
    parent: Any = None
    orchestration_template: Any = None


@dataclass(eq=False)
class OrchestrationStackResource(InventoryObject):
    stack: Any = None
    ems_ref: Optional[str] = None
    name: Optional[str] = None
    logical_resource: Optional[str] = None
    physical_resource: Optional[str] = None
    resource_category: Optional[str] = None
    resource_status: Optional[str] = None
    resource_status_reason: Optional[str] = None
    last_updated: Optional[str] = None


@dataclass(eq=False)
class OrchestrationStackOutput(InventoryObject):
    stack: Any = None
    ems_ref: Optional[str] = None
    key: Optional[str] = None
    value: Any = None
    description: Optional[str] = None


@dataclass(eq=False)
class OrchestrationStackParameter(InventoryObject):
    stack: Any = None
    ems_ref: Optional[str] = None
    name: Optional[str] = None
    value: Any = None


@dataclass(eq=False)
class OrchestrationTemplate(InventoryObject):
    ems_ref: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    orderable: bool = False


@dataclass(eq=False)
class CloudDatabase(InventoryObject):
    """A managed database, normalized across engine families."""
    ems_ref: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    db_engine: Optional[str] = None
    resource_group: Any = None


@dataclass(eq=False)
class VmOrTemplateLabel(InventoryObject):
    resource: Any = None
    name: Optional[str] = None
    value: Optional[str] = None
    section: str = "labels"
    source: str = "azure"


@dataclass(eq=False)
class Tag(InventoryObject):
    """A normalized taxonomy tag returned by the tag mapper."""
    name: Optional[str] = None
    category: Optional[str] = None
    value: Optional[str] = None


@dataclass(eq=False)
class VmOrTemplateTagging(InventoryObject):
    taggable: Any = None
    tag: Any = None


@dataclass
class SkippedRecord:
    """A raw record that did not produce an entity."""
    category: str
    identity: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'category': self.category,
            'identity': self.identity,
            'reason': self.reason
        }


@dataclass
class Diagnostic:
    """A non-fatal problem met while building an entity."""
    category: str
    identity: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'category': self.category,
            'identity': self.identity,
            'message': self.message
        }


@dataclass
class BuildReport:
    """Outcome of a graph-build run."""
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    counts: Dict[str, int] = field(default_factory=dict)
    skipped: List[SkippedRecord] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    resolved_references: int = 0
    absent_references: int = 0

    def skip(self, category: str, identity: Any, reason: str) -> None:
        self.skipped.append(SkippedRecord(category, str(identity), reason))

    def diagnose(self, category: str, identity: Any, message: str) -> None:
        self.diagnostics.append(Diagnostic(category, str(identity), message))

    def skipped_for(self, category: str) -> List[SkippedRecord]:
        return [record for record in self.skipped if record.category == category]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'counts': dict(self.counts),
            'skipped': [record.to_dict() for record in self.skipped],
            'diagnostics': [diagnostic.to_dict() for diagnostic in self.diagnostics],
            'resolved_references': self.resolved_references,
            'absent_references': self.absent_references
        }


@dataclass
class InventoryResult:
    """Finalized graph plus the report of the run that built it."""
    graph: Any
    report: BuildReport = field(default_factory=BuildReport)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'report': self.report.to_dict(),
            'graph': self.graph.to_dict()
        }
