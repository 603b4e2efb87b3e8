"""
Utility functions for Azure Inventory Graph.
"""

import posixpath
import shutil
from typing import Optional, Tuple
from urllib.parse import urlparse

MEGABYTE = 1024 * 1024
GIGABYTE = 1024 * MEGABYTE


def check_az_installed():
    """Check if the Azure CLI is installed and available in the PATH.

    Returns:
        tuple: (is_installed, error_message)
    """
    if shutil.which("az") is None:
        error_message = (
            "The Azure CLI (az) is not installed or not in your PATH.\n"
            "Please install it from https://learn.microsoft.com/cli/azure/install-azure-cli and try again.\n"
            "After installation, run 'az login' to configure it."
        )
        return False, error_message
    return True, None


def megabytes(value) -> Optional[int]:
    if value is None:
        return None
    return int(value) * MEGABYTE


def gigabytes(value) -> Optional[int]:
    if value is None:
        return None
    return int(value) * GIGABYTE


def parse_blob_uri(uri: str) -> Tuple[str, str, str]:
    """Split a storage blob URI into (storage account, container, blob name).

    https://acct.blob.core.windows.net/vhds/os.vhd -> ('acct', 'vhds', 'os.vhd')
    """
    parsed = urlparse(uri)
    if not parsed.hostname or not parsed.path.strip('/'):
        raise ValueError(f"Not a blob URI: {uri}")
    storage_name = parsed.hostname.split('.')[0]
    path = parsed.path.lstrip('/')
    container_name = posixpath.dirname(path)
    blob_name = posixpath.basename(path)
    return storage_name, container_name, blob_name


def normalize_os_name(os_name: Optional[str]) -> str:
    """Reduce a provider OS string to 'windows', 'linux' or 'unknown'."""
    if not os_name:
        return 'unknown'
    lowered = os_name.lower()
    if 'windows' in lowered:
        return 'windows'
    if any(name in lowered for name in ('linux', 'ubuntu', 'debian', 'centos', 'rhel', 'suse', 'redhat')):
        return 'linux'
    return 'unknown'


def resource_group_ems_ref(subscription_id: str, resource_group: str) -> str:
    return f"/subscriptions/{subscription_id}/resourcegroups/{resource_group}".lower()


def dig(record, *path, default=None):
    """Walk nested dictionaries, returning ``default`` on any missing step."""
    value = record
    for step in path:
        if not isinstance(value, dict):
            return default
        value = value.get(step)
        if value is None:
            return default
    return value
