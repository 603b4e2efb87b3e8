"""
Unit tests for the VM Inventory module.
"""

import copy
import unittest
from unittest.mock import patch
import sys
import os

# Add the parent directory to the path so we can import the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from azure_inventory_graph.collector import CollectorOptions, SnapshotCollector
from azure_inventory_graph.graph import InventoryGraph
from azure_inventory_graph.models import BuildReport, LazyReference
from azure_inventory_graph.provider_inventory import ProviderInventory
from azure_inventory_graph.resolver import ReferenceResolver
from azure_inventory_graph.secondary_index import SecondaryIndex
from azure_inventory_graph.tag_mapper import TagMapper
from azure_inventory_graph.utils import GIGABYTE
from azure_inventory_graph.vm_inventory import VMInventory, guest_os, vm_ems_ref

from sample_records import (
    DEPLOYMENT_ID,
    IMAGE_ID,
    NETWORK_INTERFACE,
    NIC_ID,
    OS_DISK_ID,
    RG_EMS_REF,
    SUBSCRIPTION_ID,
    VHD_URI,
    VM_ID,
    instance,
    snapshot
)

VM_EMS_REF = "sub-1/rg1/microsoft.compute/virtualmachines/vm1"

UNMANAGED_STORAGE_PROFILE = {
    'osDisk': {'name': 'vm1-os', 'osType': 'Linux', 'vhd': {'uri': VHD_URI}},
    'dataDisks': []
}


class TestVMHelpers(unittest.TestCase):
    """Test cases for the VM record helpers."""

    def test_guest_os(self):
        marketplace = instance(storageProfile={
            'imageReference': {'offer': 'UbuntuServer', 'sku': '18.04-LTS', 'version': 'latest'},
            'osDisk': {'osType': 'Linux'}
        })
        self.assertEqual(guest_os(marketplace), 'UbuntuServer 18.04 LTS')

        self.assertEqual(guest_os(instance()), 'Linux')
        self.assertIsNone(guest_os({'name': 'vm1'}))

    def test_vm_ems_ref(self):
        self.assertEqual(vm_ems_ref(SUBSCRIPTION_ID, instance()), VM_EMS_REF)
        self.assertEqual(vm_ems_ref(SUBSCRIPTION_ID, instance(name='VM1', resourceGroup='rg1')), VM_EMS_REF)


class TestVMInventory(unittest.TestCase):
    """Test cases for the VMInventory class."""

    def setUp(self):
        """Set up test environment."""
        self.setup_run(snapshot())

    def setup_run(self, data, options=None, tag_mapper=None):
        self.collector = SnapshotCollector(data, options=options)
        self.graph = InventoryGraph()
        self.report = BuildReport()
        self.index = SecondaryIndex()
        providers = ProviderInventory(self.collector, self.graph, self.report)
        providers.build_resource_groups()
        providers.build_flavors()
        providers.build_availability_zones()
        self.vm_inventory = VMInventory(self.collector, self.graph, self.report, self.index,
                                        tag_mapper=tag_mapper)

    def counts(self, *names):
        return [len(self.graph[name]) for name in names]

    def test_build_instance(self):
        self.vm_inventory.build_instances()
        ReferenceResolver(self.graph).resolve()

        self.assertEqual(len(self.graph.vms_and_templates), 1)
        vm = self.graph.vms_and_templates.find(VM_EMS_REF)
        self.assertEqual(vm.uid_ems, '11111111-2222-3333-4444-555555555555')
        self.assertEqual(vm.name, 'vm1')
        self.assertEqual(vm.raw_power_state, 'VM running')
        self.assertFalse(vm.template)
        self.assertEqual(vm.flavor.cpu_total_cores, 1)
        self.assertEqual(vm.resource_group.name, 'rg1')
        self.assertIs(vm.resource_group, self.graph.resource_groups.find(RG_EMS_REF))
        self.assertEqual(vm.availability_zone.name, 'default')
        # The image was never built
        self.assertIsNone(vm.genealogy_parent)
        self.assertIsNone(vm.orchestration_stack)

        hardware = self.graph.hardwares.find(vm)
        self.assertEqual(hardware.cpu_total_cores, 1)
        self.assertEqual(hardware.memory_mb, 1024)
        self.assertEqual(hardware.guest_os, 'Linux')
        self.assertEqual(self.graph.operating_systems.find(vm).product_name, 'Linux')

    def test_genealogy_parent_is_lazy(self):
        vm = self.vm_inventory.build_instance(instance())
        self.assertEqual(vm.genealogy_parent, LazyReference('vms_and_templates', IMAGE_ID.lower()))

    def test_rebuild_updates_same_vm(self):
        first = self.vm_inventory.build_instance(instance())
        second = self.vm_inventory.build_instance(instance(name='VM1', powerState='VM deallocated'))

        self.assertIs(first, second)
        self.assertEqual(second.raw_power_state, 'VM deallocated')
        self.assertEqual(self.counts('vms_and_templates', 'hardwares', 'networks', 'disks'), [1, 1, 2, 1])

    def test_skip_on_missing_flavor(self):
        self.vm_inventory.build_instances([instance(hardwareProfile={'vmSize': 'Standard_D99'})])

        self.assertEqual(
            self.counts('vms_and_templates', 'hardwares', 'operating_systems', 'networks', 'disks',
                        'vm_and_template_labels'),
            [0, 0, 0, 0, 0, 0]
        )
        self.assertEqual(len(self.report.skipped), 1)
        self.assertEqual(self.report.skipped[0].identity, VM_EMS_REF)
        self.assertEqual(self.report.skipped[0].reason, 'flavor not found: Standard_D99')

    def test_flavor_lookup_ignores_case(self):
        vm = self.vm_inventory.build_instance(instance(hardwareProfile={'vmSize': 'STANDARD_B1S'}))
        self.assertEqual(vm.flavor.name, 'Standard_B1s')

    def test_skip_on_missing_power_status(self):
        self.vm_inventory.build_instances([instance(powerState=None)])

        self.assertEqual(self.counts('vms_and_templates', 'hardwares'), [0, 0])
        self.assertEqual(self.report.skipped[0].reason, 'no power status')

    def test_orchestration_stack_from_index(self):
        stack = self.graph.orchestration_stacks.build(ems_ref=DEPLOYMENT_ID, name='S1')
        self.index.put(VM_ID, stack)

        with patch.object(self.collector, 'stack_resources') as mock_stack_resources:
            vm = self.vm_inventory.build_instance(instance())

        self.assertIs(vm.orchestration_stack, stack)
        mock_stack_resources.assert_not_called()

    def test_networks(self):
        vm = self.vm_inventory.build_instance(instance())
        hardware = self.graph.hardwares.find(vm)

        private = self.graph.networks.find((hardware, '10.0.0.4'))
        public = self.graph.networks.find((hardware, '52.1.2.3'))
        self.assertEqual(private.description, 'private')
        self.assertEqual(public.description, 'public')
        self.assertEqual(public.hostname, 'ipconfig1')

    def test_public_ip_lookup_failure(self):
        with patch.object(self.collector, 'instance_floating_ip', side_effect=RuntimeError("not found")):
            self.vm_inventory.build_instances()

        self.assertEqual(len(self.graph.vms_and_templates), 1)
        self.assertEqual(len(self.graph.networks), 1)
        self.assertEqual(self.report.diagnostics[0].category, 'networks')
        self.assertEqual(self.report.diagnostics[0].message, 'lookup failed: not found')

    def test_malformed_network_rolls_back_vm(self):
        second_nic_id = NIC_ID + '-2'
        data = snapshot(network_interfaces=[copy.deepcopy(NETWORK_INTERFACE), {'id': second_nic_id}])
        data['instances'][0]['networkProfile']['networkInterfaces'].append({'id': second_nic_id})
        data['instances'].append(instance(id=VM_ID + '2', name='vm2', networkProfile={'networkInterfaces': []}))
        self.setup_run(data)

        self.vm_inventory.build_instances()

        self.assertEqual(
            self.counts('vms_and_templates', 'hardwares', 'operating_systems', 'networks', 'disks'),
            [1, 1, 1, 0, 1]
        )
        self.assertIsNone(self.graph.vms_and_templates.find(VM_EMS_REF))
        self.assertEqual(len(self.report.skipped), 1)
        self.assertEqual(self.report.skipped[0].identity, VM_ID)
        self.assertTrue(self.report.skipped[0].reason.startswith('malformed record'))

    def test_malformed_duplicate_restores_existing_vm(self):
        broken_nic_id = NIC_ID + '-broken'
        data = snapshot(network_interfaces=[copy.deepcopy(NETWORK_INTERFACE), {'id': broken_nic_id}])
        data['instances'].append(instance(
            powerState='VM deallocated',
            networkProfile={'networkInterfaces': [{'id': broken_nic_id}]},
            tags={'env': 'prod'}
        ))
        self.setup_run(data)

        self.vm_inventory.build_instances()

        vm = self.graph.vms_and_templates.find(VM_EMS_REF)
        self.assertEqual(vm.raw_power_state, 'VM running')
        self.assertEqual([label.value for label in self.graph.vm_and_template_labels], ['dev'])
        self.assertEqual(self.counts('vms_and_templates', 'hardwares', 'networks'), [1, 1, 2])
        self.assertEqual(len(self.report.skipped), 1)
        self.assertEqual(self.report.skipped[0].identity, VM_ID)

    def test_managed_disk(self):
        vm = self.vm_inventory.build_instance(instance())

        disk = self.graph.disks.find((self.graph.hardwares.find(vm), 'vm1-os'))
        self.assertEqual(disk.disk_type, 'managed')
        self.assertEqual(disk.location, OS_DISK_ID)
        self.assertEqual(disk.size, 30 * GIGABYTE)
        self.assertEqual(disk.mode, 'Premium_LRS')
        self.assertEqual(disk.controller_type, 'azure')

    def test_managed_disk_not_found(self):
        self.setup_run(snapshot(managed_disks=[]))

        vm = self.vm_inventory.build_instance(instance())

        disk = self.graph.disks.find((vm, 'vm1-os'))
        self.assertIsNone(disk.size)
        self.assertIsNone(disk.mode)
        self.assertEqual(self.report.diagnostics[0].identity, 'vm1/RG1')
        self.assertEqual(self.report.diagnostics[0].message, f"managed disk not found: {OS_DISK_ID}")

    def test_data_disks(self):
        record = instance()
        record['storageProfile']['dataDisks'] = [
            {'name': 'vm1-data', 'lun': 0, 'diskSizeGb': 128, 'vhd': {'uri': 'https://acct1.blob.core.windows.net/vhds/vm1-data.vhd'}}
        ]

        vm = self.vm_inventory.build_instance(record)

        disk = self.graph.disks.find((vm, 'vm1-data'))
        self.assertEqual(disk.disk_type, 'unmanaged')
        self.assertEqual(disk.size, 128 * GIGABYTE)
        self.assertEqual(disk.mode, 'Standard_LRS')
        self.assertEqual(len(self.graph.disks), 2)

    def test_unmanaged_disk_without_size_lookup(self):
        with patch.object(self.collector, 'blob_properties') as mock_blob_properties:
            vm = self.vm_inventory.build_instance(instance(storageProfile=copy.deepcopy(UNMANAGED_STORAGE_PROFILE)))

        disk = self.graph.disks.find((vm, 'vm1-os'))
        self.assertEqual(disk.location, VHD_URI)
        self.assertIsNone(disk.size)
        self.assertEqual(disk.mode, 'Standard_LRS')
        mock_blob_properties.assert_not_called()

    def test_unmanaged_disk_size_lookup(self):
        data = snapshot(
            storage_account_keys={'acct1': [{'keyName': 'key2', 'value': 'k2'}, {'keyName': 'key1', 'value': 'k1'}]},
            blobs={'acct1/vhds/vm1-os.vhd': {'properties': {'contentLength': 32 * GIGABYTE}}}
        )
        self.setup_run(data, options=CollectorOptions(get_unmanaged_disk_space=True))

        with patch.object(self.collector, 'blob_properties',
                          wraps=self.collector.blob_properties) as mock_blob_properties:
            vm = self.vm_inventory.build_instance(instance(storageProfile=copy.deepcopy(UNMANAGED_STORAGE_PROFILE)))

        disk = self.graph.disks.find((vm, 'vm1-os'))
        self.assertEqual(disk.size, 32 * GIGABYTE)
        account = self.collector.instance_storage_accounts('acct1')
        mock_blob_properties.assert_called_once_with(account, 'vhds', 'vm1-os.vhd', 'k1')

    def test_unmanaged_disk_size_lookup_failure(self):
        self.setup_run(snapshot(), options=CollectorOptions(get_unmanaged_disk_space=True))

        with patch.object(self.collector, 'blob_properties', side_effect=RuntimeError("timeout")):
            self.vm_inventory.build_instances([instance(storageProfile=copy.deepcopy(UNMANAGED_STORAGE_PROFILE))])

        self.assertEqual(len(self.graph.vms_and_templates), 1)
        disk = self.graph.disks.find((VM_EMS_REF, 'vm1-os'))
        self.assertIsNone(disk.size)
        self.assertEqual(disk.mode, 'Standard_LRS')
        self.assertEqual(self.report.diagnostics[0].message, 'blob size lookup failed: timeout')
        self.assertEqual(self.report.skipped, [])

    def test_unmanaged_disk_unknown_account(self):
        self.setup_run(snapshot(storage_accounts=[]), options=CollectorOptions(get_unmanaged_disk_space=True))

        with patch.object(self.collector, 'blob_properties') as mock_blob_properties:
            vm = self.vm_inventory.build_instance(instance(storageProfile=copy.deepcopy(UNMANAGED_STORAGE_PROFILE)))

        disk = self.graph.disks.find((vm, 'vm1-os'))
        self.assertIsNone(disk.size)
        self.assertIsNone(disk.mode)
        mock_blob_properties.assert_not_called()

    def test_labels_upsert(self):
        vm = self.vm_inventory.build_instance(instance())
        self.vm_inventory.vm_and_template_labels(vm, {'ENV': 'prod'})

        self.assertEqual(len(self.graph.vm_and_template_labels), 1)
        label = self.graph.vm_and_template_labels.find((vm, 'env'))
        self.assertEqual(label.value, 'prod')
        self.assertEqual(label.section, 'labels')
        self.assertEqual(label.source, 'azure')

    def test_taggings(self):
        self.setup_run(snapshot(), tag_mapper=TagMapper({'env': 'environment'}))

        vm = self.vm_inventory.build_instance(instance(tags={'env': 'dev', 'owner': 'ops'}))

        self.assertEqual(len(self.graph.vm_and_template_labels), 2)
        taggings = self.graph.vm_and_template_taggings.data
        self.assertEqual(len(taggings), 1)
        self.assertIs(taggings[0].taggable, vm)
        self.assertEqual(taggings[0].tag.name, '/managed/environment/dev')


if __name__ == '__main__':
    unittest.main()
