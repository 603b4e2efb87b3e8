"""
Image Inventory Module for Azure Inventory Graph.

Builds templates for managed images, marketplace images and private VHD
images. Templates share the VM category and never carry a power state.
"""

import logging
import posixpath
from typing import Any, Dict, List, Optional

from .base_inventory import BaseInventory
from .models import VmOrTemplate
from .utils import dig, normalize_os_name, parse_blob_uri
from .vm_inventory import guest_os

logger = logging.getLogger(__name__)


def build_image_name(image: Dict[str, Any]) -> str:
    """Name of a VHD image: blob name without container and ``.vhd`` suffix."""
    if image.get('name'):
        return image['name']
    _, _, blob_name = parse_blob_uri(image['uri'])
    name, extension = posixpath.splitext(blob_name)
    return name if extension.lower() == '.vhd' else blob_name


def build_image_description(image: Dict[str, Any]) -> str:
    """Resource group and storage account holding a VHD image."""
    storage_account = image.get('storageAccount') or {}
    return f"{storage_account.get('resourceGroup')}/{storage_account.get('name')}"


class ImageInventory(BaseInventory):
    """Builds image templates."""

    def _template(self, **attributes) -> VmOrTemplate:
        return self.graph.vms_and_templates.build(
            location=self.collector.provider_region,
            vendor='azure',
            connection_state='connected',
            raw_power_state='never',
            template=True,
            **attributes
        )

    def image_hardware(self, template: VmOrTemplate, os_name: Optional[str]) -> None:
        """Build 64-bit hardware for a template, with the OS reduced to windows, linux or unknown."""
        self.graph.hardwares.build(
            vm_or_template=template,
            bitness=64,
            guest_os=normalize_os_name(os_name)
        )

    def build_managed_images(self, images: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build managed images.

        Args:
            images: Raw records from ``az image list`` (optional, listed from the collector if not given)
        """
        images = self.collector.managed_images() if images is None else images
        built = self.build_each('vms_and_templates', images, self.build_managed_image)
        logger.info(f"Built {built} managed images")

    def build_managed_image(self, image: Dict[str, Any]) -> VmOrTemplate:
        """Build one managed image template with its hardware and operating system.

        Args:
            image: Raw managed image record

        Returns:
            The template entity
        """
        uid = image['id'].lower()
        rg_ems_ref = self.collector.get_resource_group_ems_ref(image)

        template = self._template(
            uid_ems=uid,
            ems_ref=uid,
            name=image['name'],
            description=f"{image.get('resourceGroup')}/{image['name']}",
            publicly_available=False,
            resource_group=self.graph.resource_groups.lazy_find(rg_ems_ref)
        )

        self.image_hardware(template, dig(image, 'storageProfile', 'osDisk', 'osType') or 'unknown')
        self.graph.operating_systems.build(
            vm_or_template=template,
            product_name=guest_os(image)
        )
        return template

    def build_market_images(self, images: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build marketplace images.

        Args:
            images: Raw records from ``az vm image list`` (optional, listed from the collector if not given)
        """
        images = self.collector.market_images() if images is None else images
        built = self.build_each('vms_and_templates', images, self.build_market_image)
        logger.info(f"Built {built} marketplace images")

    def build_market_image(self, image: Dict[str, Any]) -> VmOrTemplate:
        """Build one publicly available template named ``offer - sku - version``.

        Args:
            image: Raw marketplace image record, keyed by its id or URN

        Returns:
            The template entity
        """
        uid = image.get('id') or image['urn']
        name = f"{image['offer']} - {image['sku']} - {image['version']}"

        template = self._template(
            uid_ems=uid,
            ems_ref=uid,
            name=name,
            description=name,
            publicly_available=True
        )
        self.image_hardware(template, 'unknown')
        return template

    def build_images(self, images: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build private VHD images.

        Args:
            images: VHD image records (optional, listed from the collector if not given)
        """
        images = self.collector.images() if images is None else images
        built = self.build_each('vms_and_templates', images, self.build_image)
        logger.info(f"Built {built} private images")

    def build_image(self, image: Dict[str, Any]) -> VmOrTemplate:
        """Build one private image template keyed by its blob URI.

        Args:
            image: Record with ``uri``, ``operatingSystem`` and ``storageAccount``

        Returns:
            The template entity
        """
        uid = image['uri']

        template = self._template(
            uid_ems=uid,
            ems_ref=uid,
            name=build_image_name(image),
            description=build_image_description(image),
            publicly_available=False
        )
        self.image_hardware(template, image.get('operatingSystem'))
        return template
