"""
Entity collections for Azure Inventory Graph.

An InventoryCollection is a deduplicated bag of entities of one class, keyed by
a natural key derived from the collection's ``manager_ref`` attributes. Keys
are case-normalized so identifiers returned in mixed case by different Azure
APIs map to one entity.
"""

import logging
from dataclasses import fields
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from .models import InventoryObject, LazyReference

logger = logging.getLogger(__name__)


def normalize_key(value: Any) -> Any:
    """Normalize one key part, or a tuple of parts, for collection lookup."""
    if isinstance(value, tuple):
        if len(value) == 1:
            return normalize_key(value[0])
        return tuple(normalize_key(part) for part in value)
    if isinstance(value, InventoryObject):
        if value.inventory_key is not None:
            return value.inventory_key
        return normalize_key(getattr(value, 'ems_ref', None) or getattr(value, 'name', None))
    if isinstance(value, LazyReference):
        return value.key
    if isinstance(value, str):
        return value.lower()
    return value


class InventoryCollection:
    """Keyed, deduplicated store for one entity category."""

    def __init__(self, name: str, model_class: Type[InventoryObject],
                 manager_ref: Tuple[str, ...] = ('ems_ref',)):
        """Initialize the collection.

        Args:
            name: Collection name, used as the target of lazy references
            model_class: Entity dataclass built by this collection
            manager_ref: Attribute names that form the natural key
        """
        self.name = name
        self.model_class = model_class
        self.manager_ref = manager_ref
        self._data: Dict[Any, InventoryObject] = {}
        # (entity, attributes before update) for every existing entity handed out for update
        self._journal: List[Tuple[InventoryObject, Dict[str, Any]]] = []

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[InventoryObject]:
        return iter(list(self._data.values()))

    def __repr__(self) -> str:
        return f"InventoryCollection({self.name!r}, {len(self)} entities)"

    @property
    def data(self) -> List[InventoryObject]:
        return list(self._data.values())

    def key_for(self, attributes: Dict[str, Any]) -> Any:
        """Compute the normalized natural key from entity attributes.

        Raises:
            ValueError: If a key attribute is missing or empty
        """
        parts = []
        for attribute in self.manager_ref:
            value = attributes.get(attribute)
            if value is None or value == '':
                raise ValueError(f"{self.name}: missing key attribute '{attribute}'")
            parts.append(value)
        return normalize_key(tuple(parts))

    def build(self, **attributes) -> InventoryObject:
        """Create an entity, or update the existing one with the same key.

        Returns:
            The entity handle, stable across rebuilds with the same key
        """
        key = self.key_for(attributes)
        existing = self._data.get(key)
        if existing is not None:
            self._remember(existing)
            existing.assign_attributes(**attributes)
            return existing

        entity = self.model_class(**attributes)
        entity.inventory_key = key
        self._data[key] = entity
        return entity

    def find(self, key: Any) -> Optional[InventoryObject]:
        """Immediate lookup; None if the entity has not been built."""
        if key is None:
            return None
        return self._data.get(normalize_key(key))

    def lazy_find(self, key: Any) -> LazyReference:
        """Register a forward reference resolved after all builders have run."""
        if key is None:
            return LazyReference(self.name, None)
        return LazyReference(self.name, normalize_key(key))

    def find_or_build(self, **attributes) -> InventoryObject:
        """Return the entity with these key attributes, building it if absent."""
        existing = self._data.get(self.key_for(attributes))
        if existing is not None:
            # Callers assign attributes on the returned handle
            self._remember(existing)
            return existing
        return self.build(**attributes)

    def truncate(self, size: int) -> None:
        """Drop entities added after the collection held ``size`` entities."""
        if size >= len(self._data):
            return
        for key in list(self._data)[size:]:
            logger.debug(f"Rolling back {self.name} entity {key}")
            del self._data[key]

    def _remember(self, entity: InventoryObject) -> None:
        self._journal.append((entity, {f.name: getattr(entity, f.name) for f in fields(entity)}))

    def savepoint(self) -> Tuple[int, int]:
        """Current (entity count, journal length), to be passed to ``rollback``."""
        return len(self._data), len(self._journal)

    def rollback(self, savepoint: Tuple[int, int]) -> None:
        """Undo every build since ``savepoint``.

        Entities created since then are dropped, and existing entities updated
        since then get their previous attribute values back.
        """
        size, journal_size = savepoint
        while len(self._journal) > journal_size:
            entity, attributes = self._journal.pop()
            for name, value in attributes.items():
                setattr(entity, name, value)
        self.truncate(size)
