"""
Azure Client Module for Azure Inventory Graph.

This module provides a collector that reads inventory records through the
Azure CLI (``az``), which must be installed and logged in.
"""

import json
import subprocess
import logging
from typing import Dict, List, Optional, Any, Tuple, Union

from .collector import InventoryCollector, CollectorOptions
from .utils import check_az_installed, dig

logger = logging.getLogger(__name__)


class AzureClient(InventoryCollector):
    """Collector backed by the Azure CLI."""

    def __init__(self, subscription_id: Optional[str] = None, provider_region: Optional[str] = None,
                 options: Optional[CollectorOptions] = None,
                 previous_graph: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        """Initialize the Azure client.

        Args:
            subscription_id: Azure subscription id (defaults to the active az account)
            provider_region: Region for VM sizes and marketplace images
            options: Optional collection switches
            previous_graph: Exported graph of an earlier run
        """
        super().__init__(subscription_id, provider_region, options, previous_graph)
        self._cache: Dict[str, Any] = {}

        is_installed, error_message = check_az_installed()
        if not is_installed:
            logger.error(error_message)

        if not self.subscription_id:
            account = self.run_az_command(["az", "account", "show"]) or {}
            self.subscription_id = account.get('id')
            logger.info(f"Using active subscription: {self.subscription_id}")

    def run_az_command(self, command: List[str], check_json: bool = True,
                       suppress_errors: bool = False) -> Optional[Union[Dict, List, str]]:
        """Execute an az command and return the output.

        Args:
            command: List of command parts to execute
            check_json: Whether to parse the output as JSON
            suppress_errors: Whether to suppress error messages

        Returns:
            Parsed JSON object, list, or raw text output; None on failure
        """
        command = list(command)
        if check_json:
            command += ["--output", "json"]
        if self.subscription_id and command[:3] != ["az", "account", "show"]:
            command += ["--subscription", self.subscription_id]

        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                text=True
            )

            if not result.stdout or result.stdout.strip() == "":
                return [] if check_json else ""

            if check_json:
                try:
                    return json.loads(result.stdout)
                except json.JSONDecodeError as e:
                    if not suppress_errors:
                        logger.warning(f"Command output is not valid JSON: {command}")
                        logger.warning(f"Error: {str(e)}")
                    return []
            return result.stdout
        except subprocess.CalledProcessError as e:
            if not suppress_errors:
                logger.error(f"Error executing command: {e}")
                logger.error(f"Error output: {e.stderr}")

                if "MissingSubscriptionRegistration" in e.stderr:
                    logger.warning("NOTE: A resource provider is not registered for this subscription.")
                    logger.warning("Register it with 'az provider register --namespace <namespace>'.")
            return None

    def _cached(self, name: str, command: List[str]) -> List[Dict[str, Any]]:
        if name not in self._cache:
            self._cache[name] = self.run_az_command(command) or []
        return self._cache[name]

    def _server_databases(self, service: List[str], server_flag: str) -> List[Tuple[Dict, Dict]]:
        pairs = []
        servers = self._cached(' '.join(service), ["az"] + service + ["server", "list"])
        for server in servers:
            databases = self.run_az_command(
                ["az"] + service + ["db", "list",
                                    "--resource-group", server.get('resourceGroup', ''),
                                    server_flag, server.get('name', '')]
            ) or []
            pairs.extend((server, database) for database in databases)
        logger.info(f"Found {len(pairs)} {' '.join(service)} databases")
        return pairs

    # Listings

    def resource_groups(self):
        return self._cached('groups', ["az", "group", "list"])

    def flavors(self):
        if not self.provider_region:
            logger.warning("No region given; VM sizes cannot be listed")
            return []
        return self._cached('sizes', ["az", "vm", "list-sizes", "--location", self.provider_region])

    def stacks(self):
        if 'deployments' not in self._cache:
            deployments = []
            for group in self.resource_groups():
                listed = self.run_az_command(
                    ["az", "deployment", "group", "list", "--resource-group", group.get('name', '')]
                ) or []
                for deployment in listed:
                    deployment.setdefault('resourceGroup', group.get('name'))
                deployments.extend(listed)
            self._cache['deployments'] = deployments
        return self._cache['deployments']

    def stack_templates(self):
        templates = []
        for deployment in self.stacks():
            content = self.run_az_command(
                ["az", "deployment", "group", "export",
                 "--resource-group", deployment.get('resourceGroup', ''),
                 "--name", deployment.get('name', '')],
                suppress_errors=True
            )
            if not content:
                continue
            templates.append({
                'uid': deployment.get('id'),
                'name': deployment.get('name'),
                'description': f"contentVersion: {content.get('contentVersion', 'N/A')}",
                'content': json.dumps(content, indent=2)
            })
        return templates

    def instances(self):
        return self._cached('vms', ["az", "vm", "list", "--show-details"])

    def managed_images(self):
        return self._cached('images', ["az", "image", "list"])

    def market_images(self):
        if not self.provider_region:
            return []
        return self._cached('market_images', ["az", "vm", "image", "list", "--location", self.provider_region])

    def images(self):
        images = []
        for account in self._storage_accounts():
            key = self._storage_key(account)
            if not key:
                continue
            auth = ["--account-name", account.get('name', ''), "--account-key", key]
            containers = self.run_az_command(["az", "storage", "container", "list"] + auth) or []
            for container in containers:
                blobs = self.run_az_command(
                    ["az", "storage", "blob", "list", "--container-name", container.get('name', ''),
                     "--include", "m"] + auth
                ) or []
                for blob in blobs:
                    os_type = dig(blob, 'metadata', 'microsoftazurecompute_ostype')
                    if not blob.get('name', '').lower().endswith('.vhd') or not os_type:
                        continue
                    images.append({
                        'uri': f"https://{account.get('name')}.blob.core.windows.net/"
                               f"{container.get('name')}/{blob.get('name')}",
                        'operatingSystem': os_type,
                        'storageAccount': {
                            'name': account.get('name'),
                            'resourceGroup': account.get('resourceGroup')
                        }
                    })
        return images

    def mariadb_databases(self):
        return self._server_databases(["mariadb"], "--server-name")

    def mysql_databases(self):
        return self._server_databases(["mysql"], "--server-name")

    def postgresql_databases(self):
        return self._server_databases(["postgres"], "--server-name")

    def sql_databases(self):
        return self._server_databases(["sql"], "--server")

    # Point lookups

    def stack_resources(self, deployment):
        return self.run_az_command(
            ["az", "deployment", "operation", "group", "list",
             "--resource-group", deployment.get('resourceGroup', ''),
             "--name", deployment.get('name', '')]
        ) or []

    def instance_network_ports(self, instance):
        ports = []
        for reference in dig(instance, 'networkProfile', 'networkInterfaces', default=[]):
            port = self._show(reference.get('id'), ["az", "network", "nic", "show"])
            if port:
                ports.append(port)
        return ports

    def instance_floating_ip(self, public_ip):
        return self._show(public_ip.get('id'), ["az", "network", "public-ip", "show"])

    def instance_managed_disk(self, disk_id):
        return self._show(disk_id, ["az", "disk", "show"])

    def instance_storage_accounts(self, storage_name):
        for account in self._storage_accounts():
            if str(account.get('name', '')).lower() == str(storage_name).lower():
                return account
        return None

    def instance_account_keys(self, storage_account):
        keys = self.run_az_command(
            ["az", "storage", "account", "keys", "list",
             "--account-name", storage_account.get('name', ''),
             "--resource-group", storage_account.get('resourceGroup', '')]
        ) or []
        return {key.get('keyName'): key.get('value') for key in keys}

    def blob_properties(self, storage_account, container_name, blob_name, storage_key):
        return self.run_az_command(
            ["az", "storage", "blob", "show",
             "--account-name", storage_account.get('name', ''),
             "--container-name", container_name,
             "--name", blob_name,
             "--account-key", storage_key or '']
        )

    def _show(self, resource_id: Optional[str], command: List[str]) -> Optional[Dict[str, Any]]:
        if not resource_id:
            return None
        key = resource_id.lower()
        if key not in self._cache:
            self._cache[key] = self.run_az_command(command + ["--ids", resource_id])
        return self._cache[key]

    def _storage_accounts(self) -> List[Dict[str, Any]]:
        return self._cached('storage_accounts', ["az", "storage", "account", "list"])

    def _storage_key(self, storage_account: Dict[str, Any]) -> Optional[str]:
        keys = self.instance_account_keys(storage_account)
        return keys.get('key1') or keys.get('key2')
