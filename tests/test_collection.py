"""
Unit tests for the collection, graph and model modules.
"""

import unittest
import sys
import os

# Add the parent directory to the path so we can import the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from azure_inventory_graph.collection import InventoryCollection, normalize_key
from azure_inventory_graph.graph import InventoryGraph
from azure_inventory_graph.models import Flavor, LazyReference, ResourceGroup, VmOrTemplate


class TestNormalizeKey(unittest.TestCase):
    """Test cases for key normalization."""

    def test_strings_are_lower_cased(self):
        self.assertEqual(normalize_key("Standard_B1s"), "standard_b1s")

    def test_single_part_tuple_collapses(self):
        self.assertEqual(normalize_key(("RG1",)), "rg1")

    def test_composite_key(self):
        self.assertEqual(normalize_key(("A", "B")), ("a", "b"))

    def test_entity_contributes_its_key(self):
        collection = InventoryCollection('vms_and_templates', VmOrTemplate)
        vm = collection.build(ems_ref="VM1")
        self.assertEqual(normalize_key((vm, "10.0.0.4")), ("vm1", "10.0.0.4"))

    def test_lazy_reference_contributes_its_key(self):
        self.assertEqual(normalize_key(LazyReference('flavors', 'x')), 'x')

    def test_idempotent(self):
        key = normalize_key(("Mixed", "CASE"))
        self.assertEqual(normalize_key(key), key)


class TestInventoryCollection(unittest.TestCase):
    """Test cases for the InventoryCollection class."""

    def setUp(self):
        """Set up test environment."""
        self.flavors = InventoryCollection('flavors', Flavor)

    def test_build_same_key_twice_yields_one_entity(self):
        first = self.flavors.build(ems_ref="Standard_B1s", name="Standard_B1s", cpu_total_cores=1)
        second = self.flavors.build(ems_ref="STANDARD_B1S", name="Standard_B1s", cpu_total_cores=2)

        self.assertIs(first, second)
        self.assertEqual(len(self.flavors), 1)
        self.assertEqual(first.cpu_total_cores, 2)
        self.assertEqual(first.inventory_key, "standard_b1s")

    def test_build_missing_key_raises(self):
        with self.assertRaises(ValueError):
            self.flavors.build(name="no-ref")
        with self.assertRaises(ValueError):
            self.flavors.build(ems_ref="", name="empty-ref")
        self.assertEqual(len(self.flavors), 0)

    def test_build_unknown_attribute_raises(self):
        self.flavors.build(ems_ref="a")
        with self.assertRaises(ValueError):
            self.flavors.build(ems_ref="a", color="blue")

    def test_find(self):
        flavor = self.flavors.build(ems_ref="standard_b1s")
        self.assertIs(self.flavors.find("Standard_B1s"), flavor)
        self.assertIsNone(self.flavors.find("Standard_D2"))
        self.assertIsNone(self.flavors.find(None))

    def test_lazy_find(self):
        self.assertEqual(self.flavors.lazy_find("Standard_B1s"), LazyReference('flavors', 'standard_b1s'))
        self.assertEqual(self.flavors.lazy_find(None), LazyReference('flavors', None))

    def test_find_or_build_keeps_existing(self):
        flavor = self.flavors.build(ems_ref="a", cpu_total_cores=4)
        found = self.flavors.find_or_build(ems_ref="A")

        self.assertIs(found, flavor)
        self.assertEqual(found.cpu_total_cores, 4)

    def test_find_or_build_creates(self):
        built = self.flavors.find_or_build(ems_ref="b")
        self.assertIs(self.flavors.find("b"), built)

    def test_truncate(self):
        self.flavors.build(ems_ref="a")
        self.flavors.build(ems_ref="b")
        self.flavors.build(ems_ref="c")

        self.flavors.truncate(1)

        self.assertEqual([flavor.ems_ref for flavor in self.flavors], ["a"])
        self.flavors.truncate(5)
        self.assertEqual(len(self.flavors), 1)

    def test_update_does_not_move_entity(self):
        self.flavors.build(ems_ref="a")
        self.flavors.build(ems_ref="b")
        self.flavors.build(ems_ref="a", cpu_total_cores=8)

        self.flavors.truncate(1)

        self.assertEqual(self.flavors.find("a").cpu_total_cores, 8)
        self.assertIsNone(self.flavors.find("b"))


class TestInventoryGraph(unittest.TestCase):
    """Test cases for the InventoryGraph class."""

    def setUp(self):
        """Set up test environment."""
        self.graph = InventoryGraph()

    def test_collections(self):
        self.assertIn('vms_and_templates', self.graph)
        self.assertIs(self.graph.flavors, self.graph['flavors'])
        self.assertIsNone(self.graph.get('machine_types'))
        with self.assertRaises(AttributeError):
            self.graph.machine_types

    def test_composite_keys(self):
        vm = self.graph.vms_and_templates.build(ems_ref="vm1")
        hardware = self.graph.hardwares.build(vm_or_template=vm)
        network = self.graph.networks.build(hardware=hardware, ipaddress="10.0.0.4")

        self.assertIs(self.graph.hardwares.find(vm), hardware)
        self.assertIs(self.graph.networks.find(("VM1", "10.0.0.4")), network)

    def test_savepoint_and_rollback(self):
        self.graph.resource_groups.build(ems_ref="rg1")
        savepoint = self.graph.savepoint()

        vm = self.graph.vms_and_templates.build(ems_ref="vm1")
        self.graph.hardwares.build(vm_or_template=vm)
        self.graph.resource_groups.build(ems_ref="rg2")

        self.graph.rollback(savepoint)

        counts = self.graph.counts()
        self.assertEqual(counts['resource_groups'], 1)
        self.assertEqual(counts['vms_and_templates'], 0)
        self.assertEqual(counts['hardwares'], 0)

    def test_rollback_restores_updated_entities(self):
        vm = self.graph.vms_and_templates.build(ems_ref="vm1", raw_power_state="VM running")
        savepoint = self.graph.savepoint()

        self.graph.vms_and_templates.build(ems_ref="VM1", raw_power_state="VM deallocated")
        self.graph.vms_and_templates.build(ems_ref="vm1", raw_power_state="VM stopped")
        self.graph.rollback(savepoint)

        self.assertIs(self.graph.vms_and_templates.find("vm1"), vm)
        self.assertEqual(vm.raw_power_state, "VM running")

    def test_rollback_restores_upserted_labels(self):
        vm = self.graph.vms_and_templates.build(ems_ref="vm1")
        label = self.graph.vm_and_template_labels.build(resource=vm, name="env", value="dev")
        savepoint = self.graph.savepoint()

        self.graph.vm_and_template_labels.find_or_build(resource=vm, name="ENV").assign_attributes(value="prod")
        self.graph.vm_and_template_labels.find_or_build(resource=vm, name="owner").assign_attributes(value="ops")
        self.graph.rollback(savepoint)

        self.assertEqual(label.value, "dev")
        self.assertEqual(len(self.graph.vm_and_template_labels), 1)

    def test_to_dict_renders_references(self):
        rg = self.graph.resource_groups.build(ems_ref="/subscriptions/s/resourcegroups/rg1", name="rg1")
        vm = self.graph.vms_and_templates.build(
            ems_ref="vm1",
            resource_group=rg,
            flavor=LazyReference('flavors', None)
        )
        self.graph.hardwares.build(vm_or_template=vm)

        data = self.graph.to_dict()

        self.assertEqual(data['vms_and_templates'][0]['resource_group'], "/subscriptions/s/resourcegroups/rg1")
        self.assertIsNone(data['vms_and_templates'][0]['flavor'])
        self.assertEqual(data['hardwares'][0]['vm_or_template'], "vm1")
        self.assertEqual(data['flavors'], [])

    def test_entities_compare_by_identity(self):
        self.assertNotEqual(ResourceGroup(ems_ref="a"), ResourceGroup(ems_ref="a"))


if __name__ == '__main__':
    unittest.main()
