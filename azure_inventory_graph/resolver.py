"""
Reference resolution for Azure Inventory Graph.

Builders store LazyReference placeholders in entity attributes. Once every
builder routine has finished, the resolver rewrites each placeholder into the
referenced entity, or None when the target was never built.
"""

import logging
from dataclasses import fields
from typing import Tuple

from .graph import InventoryGraph
from .models import LazyReference

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Single finalize pass over every built entity."""

    def __init__(self, graph: InventoryGraph):
        self.graph = graph
        self.resolved = 0
        self.absent = 0

    def resolve_reference(self, reference: LazyReference):
        """Return the entity a reference points at, or None."""
        if reference.key is None:
            return None
        collection = self.graph.get(reference.collection)
        if collection is None:
            logger.warning(f"Lazy reference to unknown collection: {reference.collection}")
            return None
        return collection.find(reference.key)

    def resolve(self) -> Tuple[int, int]:
        """Resolve all pending references in the graph.

        Returns:
            Tuple of (resolved count, absent count)
        """
        for collection in self.graph:
            for entity in collection:
                for entity_field in fields(entity):
                    value = getattr(entity, entity_field.name)
                    if not isinstance(value, LazyReference):
                        continue
                    target = self.resolve_reference(value)
                    setattr(entity, entity_field.name, target)
                    if target is None:
                        self.absent += 1
                        if value.key is not None:
                            logger.debug(
                                f"{collection.name}.{entity_field.name}: "
                                f"{value.collection} {value.key} not found"
                            )
                    else:
                        self.resolved += 1

        logger.info(f"Resolved {self.resolved} references, {self.absent} absent")
        return self.resolved, self.absent
