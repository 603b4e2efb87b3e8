"""
VM Inventory Module for Azure Inventory Graph.

This module builds VM instances together with their hardware, operating
system, networks, disks, labels and taggings.
"""

import logging
from typing import Dict, List, Optional, Any

from .base_inventory import BaseInventory
from .models import Flavor, Hardware, VmOrTemplate
from .tag_mapper import TagMapper
from .utils import MEGABYTE, dig, gigabytes, parse_blob_uri

logger = logging.getLogger(__name__)


def guest_os(record: Dict[str, Any]) -> Optional[str]:
    """Marketplace offer and SKU if known, otherwise the OS disk type."""
    image_reference = dig(record, 'storageProfile', 'imageReference') or {}
    if image_reference.get('offer'):
        sku = (image_reference.get('sku') or '').replace('-', ' ')
        return f"{image_reference['offer']} {sku}".strip()
    return dig(record, 'storageProfile', 'osDisk', 'osType')


def vm_ems_ref(subscription_id: str, instance: Dict[str, Any]) -> str:
    """Globally unique VM key: subscription/resource group/type/name."""
    return '/'.join([
        str(subscription_id),
        instance['resourceGroup'],
        instance['type'],
        instance['name']
    ]).lower()


class VMInventory(BaseInventory):
    """Class for building VM instances into the inventory graph."""

    def __init__(self, *args, tag_mapper: Optional[TagMapper] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.tag_mapper = tag_mapper or TagMapper()

    def build_instances(self, instances: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build VM instances.

        Args:
            instances: Raw records from ``az vm list --show-details`` (optional, listed from the collector if not given)
        """
        instances = self.collector.instances() if instances is None else instances
        built = self.build_each('vms_and_templates', instances, self.build_instance)
        logger.info(f"Built {built} of {len(instances)} VM instances")

    def build_instance(self, instance: Dict[str, Any]) -> Optional[VmOrTemplate]:
        """Build one VM and its children.

        Args:
            instance: Raw record from ``az vm list --show-details``

        Returns:
            The VM entity, or None if the record was skipped
        """
        uid = vm_ems_ref(self.collector.subscription_id, instance)

        vm_size = instance['hardwareProfile']['vmSize']
        flavor = self.graph.flavors.find(vm_size)
        if flavor is None:
            logger.info(f"Skipping VM {uid}: unknown VM size {vm_size}")
            self.report.skip('vms_and_templates', uid, f"flavor not found: {vm_size}")
            return None

        status = self.collector.power_status(instance)
        if not status:
            logger.info(f"Skipping VM {uid}: no power status")
            self.report.skip('vms_and_templates', uid, "no power status")
            return None

        rg_ems_ref = self.collector.get_resource_group_ems_ref(instance)
        parent_ref = self.collector.parent_ems_ref(instance)

        vm = self.graph.vms_and_templates.build(
            uid_ems=instance.get('vmId'),
            ems_ref=uid,
            name=instance['name'],
            vendor='azure',
            connection_state='connected',
            raw_power_state=status,
            template=False,
            flavor=flavor,
            location=instance.get('location'),
            genealogy_parent=self.graph.vms_and_templates.lazy_find(parent_ref),
            orchestration_stack=self.index.get(instance['id']),
            availability_zone=self.graph.availability_zones.lazy_find('default'),
            resource_group=self.graph.resource_groups.lazy_find(rg_ems_ref)
        )

        self.instance_hardware(vm, instance, flavor)
        self.instance_operating_system(vm, instance)

        tags = instance.get('tags') or {}
        self.vm_and_template_labels(vm, tags)
        self.vm_and_template_taggings(vm, self.map_labels('VmAzure', tags))
        return vm

    def instance_hardware(self, vm: VmOrTemplate, instance: Dict[str, Any], flavor: Flavor) -> Hardware:
        """Build the hardware of a VM from its flavor, with its networks and disks.

        Returns:
            The hardware entity
        """
        hardware = self.graph.hardwares.build(
            vm_or_template=vm,
            cpu_total_cores=flavor.cpu_total_cores,
            memory_mb=flavor.memory // MEGABYTE,
            disk_capacity=flavor.root_disk_size + flavor.swap_disk_size,
            guest_os=guest_os(instance)
        )

        self.hardware_networks(hardware, instance)
        self.hardware_disks(hardware, instance)
        return hardware

    def instance_operating_system(self, vm: VmOrTemplate, instance: Dict[str, Any]) -> None:
        self.graph.operating_systems.build(
            vm_or_template=vm,
            product_name=guest_os(instance)
        )

    def hardware_networks(self, hardware: Hardware, instance: Dict[str, Any]) -> None:
        """Build a private network per IP configuration, and a public one when a public IP resolves."""
        identity = instance['id']
        ports = self.fetch('networks', identity, lambda: self.collector.instance_network_ports(instance)) or []
        for nic in ports:
            for ipconfig in nic['ipConfigurations']:
                hostname = ipconfig.get('name')
                private_ip = ipconfig.get('privateIPAddress')
                if private_ip:
                    self.hardware_network(hardware, private_ip, hostname, 'private')

                public_ip = ipconfig.get('publicIPAddress')
                if not public_ip:
                    continue

                ip_profile = self.fetch('networks', identity,
                                        lambda: self.collector.instance_floating_ip(public_ip))
                if not ip_profile or not ip_profile.get('ipAddress'):
                    continue
                self.hardware_network(hardware, ip_profile['ipAddress'], hostname, 'public')

    def hardware_network(self, hardware: Hardware, ip_address: str, hostname: str, description: str) -> None:
        self.graph.networks.build(
            hardware=hardware,
            description=description,
            ipaddress=ip_address,
            hostname=hostname
        )

    def hardware_disks(self, hardware: Hardware, instance: Dict[str, Any]) -> None:
        storage_profile = instance['storageProfile']
        for disk in storage_profile.get('dataDisks') or []:
            self.add_instance_disk(hardware, instance, disk)
        self.add_instance_disk(hardware, instance, storage_profile['osDisk'])

    def add_instance_disk(self, hardware: Hardware, instance: Dict[str, Any], disk: Dict[str, Any]) -> None:
        """Build a disk, resolving size and storage tier from the backing storage."""
        identity = f"{instance['name']}/{instance['resourceGroup']}"

        if disk.get('managedDisk'):
            disk_type = 'managed'
            disk_location = disk['managedDisk'].get('id')
            managed_disk = self.fetch('disks', identity,
                                      lambda: self.collector.instance_managed_disk(disk_location))
            if managed_disk:
                disk_size = gigabytes(managed_disk.get('diskSizeGb'))
                mode = dig(managed_disk, 'sku', 'name')
            else:
                logger.warning(f"Unable to find disk information for {identity}")
                self.report.diagnose('disks', identity, f"managed disk not found: {disk_location}")
                disk_size = None
                mode = None
        else:
            disk_type = 'unmanaged'
            disk_location = dig(disk, 'vhd', 'uri')
            disk_size = gigabytes(disk.get('diskSizeGb'))
            mode = None

            if disk_location:
                disk_size, mode = self.unmanaged_disk_details(identity, disk_location, disk_size)

        self.graph.disks.build(
            hardware=hardware,
            device_type='disk',
            controller_type='azure',
            device_name=disk['name'],
            location=disk_location,
            size=disk_size,
            disk_type=disk_type,
            mode=mode
        )

    def unmanaged_disk_details(self, identity: str, disk_location: str, disk_size: Optional[int]):
        """Storage tier of a VHD's account, and its size if probing is enabled.

        Returns:
            Tuple of (size in bytes or None, storage sku name or None)
        """
        storage_name, container_name, blob_name = parse_blob_uri(disk_location)
        storage_account = self.fetch('disks', identity,
                                     lambda: self.collector.instance_storage_accounts(storage_name))
        mode = dig(storage_account, 'sku', 'name') if storage_account else None

        if self.collector.options.get_unmanaged_disk_space and disk_size is None and storage_account:
            try:
                storage_keys = self.collector.instance_account_keys(storage_account) or {}
                storage_key = storage_keys.get('key1') or storage_keys.get('key2')
                blob_properties = self.collector.blob_properties(
                    storage_account, container_name, blob_name, storage_key
                ) or {}
                content_length = dig(blob_properties, 'properties', 'contentLength')
                disk_size = int(content_length) if content_length is not None else None
            except Exception as e:
                logger.warning(f"Unable to read blob size for {identity}: {str(e)}")
                self.report.diagnose('disks', identity, f"blob size lookup failed: {str(e)}")
                disk_size = None
        return disk_size, mode

    def vm_and_template_labels(self, resource: VmOrTemplate, tags: Dict[str, Any]) -> None:
        """Upsert one label per Azure tag, keyed by resource and tag name."""
        for name, value in tags.items():
            self.graph.vm_and_template_labels.find_or_build(
                resource=resource,
                name=name
            ).assign_attributes(
                section='labels',
                source='azure',
                value=value
            )

    def map_labels(self, model_name: str, tags: Dict[str, Any]):
        labels = [{'name': name, 'value': value} for name, value in tags.items()]
        return self.tag_mapper.map_labels(model_name, labels)

    def vm_and_template_taggings(self, resource: VmOrTemplate, tags) -> None:
        for tag in tags:
            self.graph.vm_and_template_taggings.build(taggable=resource, tag=tag)
