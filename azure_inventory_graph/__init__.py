"""
Azure Inventory Graph.

Builds a deduplicated, cross-referenced entity graph from Azure inventory
records.
"""

from .collector import CollectorOptions, InventoryCollector, SnapshotCollector
from .graph_builder import GraphBuilder

__version__ = "0.1.0"
