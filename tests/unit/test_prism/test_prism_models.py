# SPDX-License-Identifier: LGPL-3.0-or-later
import unittest

from mafailover.prism.models import ClusterInfo, HostInfo, ProtectionDomain, RemoteSite, entities


class TestClusterInfo(unittest.TestCase):
    def test_decodes_cluster(self):
        info = ClusterInfo.from_json({
            "name": "cluster-a",
            "uuid": "u-1",
            "version": "6.5.2",
            "cluster_redundancy_state": {"current_redundancy_factor": 2, "desired_redundancy_factor": 3},
            "management_servers": [{"ip_address": "10.0.0.5", "management_server_type": "vcenter"}],
        })
        self.assertEqual(info.name, "cluster-a")
        self.assertEqual(info.redundancy_factor, 2)
        self.assertFalse(info.upgrade_in_progress)
        self.assertEqual(info.management_servers, ["10.0.0.5"])

    def test_redundancy_falls_back_to_desired(self):
        info = ClusterInfo.from_json({"name": "c", "cluster_redundancy_state": {"desired_redundancy_factor": 1}})
        self.assertEqual(info.redundancy_factor, 1)

    def test_missing_redundancy_is_none(self):
        self.assertIsNone(ClusterInfo.from_json({"name": "c"}).redundancy_factor)

    def test_upgrade_detection(self):
        self.assertTrue(ClusterInfo.from_json({"name": "c", "is_upgrade_in_progress": True}).upgrade_in_progress)
        self.assertTrue(
            ClusterInfo.from_json({"name": "c", "version": "6.5", "target_version": "6.8"}).upgrade_in_progress
        )
        self.assertFalse(
            ClusterInfo.from_json({"name": "c", "version": "6.5", "target_version": "6.5"}).upgrade_in_progress
        )

    def test_management_servers_deduplicated(self):
        info = ClusterInfo.from_json({
            "name": "c",
            "management_servers": [{"ip_address": "1.1.1.1"}, {"ip_address": "1.1.1.1"}, {"ip_address": "2.2.2.2"}],
        })
        self.assertEqual(info.management_servers, ["1.1.1.1", "2.2.2.2"])


class TestEntities(unittest.TestCase):
    def test_wrapped_and_bare_lists(self):
        self.assertEqual(entities({"metadata": {}, "entities": [{"a": 1}, "junk"]}), [{"a": 1}])
        self.assertEqual(entities([{"a": 1}]), [{"a": 1}])
        self.assertEqual(entities(None), [])


class TestHostAndSite(unittest.TestCase):
    def test_host(self):
        h = HostInfo.from_json({
            "name": "esx1",
            "uuid": "h1",
            "hypervisor_address": "10.1.0.1",
            "service_vmexternal_ip": "10.1.1.1",
            "ipmi_address": "",
        })
        self.assertEqual(h.controller_address, "10.1.1.1")
        self.assertIsNone(h.ipmi_address)

    def test_remote_site(self):
        site = RemoteSite.from_json({"name": "site-b", "remote_ip_ports": {"10.2.9.40": 2020}})
        self.assertEqual(site.addresses, ["10.2.9.40"])


class TestProtectionDomain(unittest.TestCase):
    def test_metro_fields(self):
        pd = ProtectionDomain.from_json({
            "name": "PD1",
            "active": True,
            "metro_avail": {
                "role": "Active",
                "remote_site": "site-b",
                "storage_container": "ctr1",
                "status": "Enabled",
                "failure_handling": "Witness",
            },
        })
        self.assertTrue(pd.is_metro)
        self.assertTrue(pd.uses_witness)
        self.assertTrue(pd.is_role("active"))
        self.assertTrue(pd.is_status("ENABLED"))
        self.assertEqual(pd.storage_container, "ctr1")

    def test_async_domain_is_not_metro(self):
        pd = ProtectionDomain.from_json({"name": "async", "active": True, "metro_avail": None})
        self.assertFalse(pd.is_metro)
        self.assertFalse(pd.uses_witness)


if __name__ == "__main__":
    unittest.main()
