"""
Tag mapping for Azure Inventory Graph.

Translates provider labels into normalized taxonomy tags. The mapping policy
is supplied by the caller as a dict of label name to tag category.
"""

import logging
from typing import Dict, List, Optional

from .models import Tag

logger = logging.getLogger(__name__)


class TagMapper:
    """Maps Azure resource tags onto managed taxonomy tags."""

    def __init__(self, mappings: Optional[Dict[str, str]] = None, prefix: str = '/managed'):
        """Initialize the tag mapper.

        Args:
            mappings: Label name to tag category, matched case-insensitively
            prefix: Namespace of produced tag names
        """
        self.prefix = prefix
        self.mappings = {name.lower(): category for name, category in (mappings or {}).items()}
        self._tags: Dict[str, Tag] = {}

    def map_labels(self, model_name: str, labels: List[Dict[str, str]]) -> List[Tag]:
        """Map labels of one resource to tags.

        Args:
            model_name: Name of the tagged model, e.g. 'VmAzure'
            labels: List of {'name': ..., 'value': ...} dictionaries

        Returns:
            List of Tag objects, one per mapped label with a value
        """
        tags = []
        for label in labels:
            category = self.mappings.get(str(label.get('name', '')).lower())
            value = label.get('value')
            if not category or value in (None, ''):
                continue
            tags.append(self._tag(category, str(value)))
        if tags:
            logger.debug(f"Mapped {len(tags)} of {len(labels)} labels for {model_name}")
        return tags

    def _tag(self, category: str, value: str) -> Tag:
        name = f"{self.prefix}/{category}/{value}".lower()
        if name not in self._tags:
            self._tags[name] = Tag(name=name, category=category, value=value)
        return self._tags[name]
