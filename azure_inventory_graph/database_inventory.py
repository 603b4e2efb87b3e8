"""
Database Inventory Module for Azure Inventory Graph.

Builds cloud databases from the four Azure database families into one
category, with an engine label telling them apart.
"""

import logging
from typing import Any, Dict, Optional

from .base_inventory import BaseInventory
from .models import CloudDatabase
from .utils import dig

logger = logging.getLogger(__name__)

# (engine label, collector listing name, whether status is read from the database)
DATABASE_FAMILIES = [
    ('MariaDB', 'mariadb_databases', False),
    ('MySQL', 'mysql_databases', False),
    ('PostgreSQL', 'postgresql_databases', False),
    ('SQL Server', 'sql_databases', True),
]


class DatabaseInventory(BaseInventory):
    """Builds cloud databases across engine families."""

    def build_cloud_databases(self) -> None:
        """Build the databases of every engine family listed by the collector."""
        for engine, listing, status_from_database in DATABASE_FAMILIES:
            pairs = self.fetch('cloud_databases', listing, getattr(self.collector, listing)) or []
            built = self.build_each(
                'cloud_databases', pairs,
                lambda pair: self.build_cloud_database(pair[0], pair[1], engine, status_from_database)
            )
            logger.info(f"Built {built} {engine} databases")

    def build_cloud_database(self, server: Dict[str, Any], database: Dict[str, Any], engine: str,
                             status_from_database: bool = False) -> CloudDatabase:
        """Build one database named ``server/database``.

        Args:
            server: Raw server record
            database: Raw database record
            engine: Engine label, e.g. 'MySQL'
            status_from_database: Whether the status comes from the database rather than the server

        Returns:
            The database entity
        """
        rg_ems_ref = self.collector.get_resource_group_ems_ref(database)
        if status_from_database:
            status = database.get('status')
        else:
            status = server.get('userVisibleState') or dig(server, 'properties', 'userVisibleState')

        return self.graph.cloud_databases.build(
            ems_ref=database['id'],
            name=f"{server['name']}/{database['name']}",
            status=status,
            db_engine=self.engine_label(engine, server),
            resource_group=self.graph.resource_groups.lazy_find(rg_ems_ref)
        )

    @staticmethod
    def engine_label(engine: str, server: Dict[str, Any]) -> str:
        version: Optional[str] = server.get('version') or dig(server, 'properties', 'version')
        return f"{engine} {version}" if version else engine
