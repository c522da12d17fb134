# SPDX-License-Identifier: LGPL-3.0-or-later
import unittest
from unittest.mock import Mock, patch

from pyVmomi import vim

from fakes.fake_logger import FakeLogger
from mafailover.core.exceptions import Cancelled, VMwareError
from mafailover.core.polling import CancelToken
from mafailover.vmware.client import ClusterSettings, VCenterClient


def _vnic(ip):
    v = Mock()
    v.spec.ip.ipAddress = ip
    return v


class TestVCenterHelpers(unittest.TestCase):
    def setUp(self):
        self.client = VCenterClient(FakeLogger(), "vc.example", "administrator@vsphere.local", "pw", task_poll_s=0)

    def test_host_addresses(self):
        host = Mock()
        host.name = "esx1.example"
        host.config.network.vnic = [_vnic("10.1.0.1"), _vnic("10.1.0.1"), _vnic("192.168.5.1")]
        self.assertEqual(VCenterClient.host_addresses(host), ["10.1.0.1", "192.168.5.1", "esx1.example"])

    def test_host_outside_cluster(self):
        host = Mock()
        host.parent = Mock()  # a plain ComputeResource / folder
        self.assertIsNone(VCenterClient.host_cluster(host))

    def test_cluster_settings(self):
        cluster = Mock()
        cluster.name = "Metro"
        cluster.configurationEx.dasConfig.enabled = True
        cluster.configurationEx.drsConfig.enabled = True
        cluster.configurationEx.drsConfig.defaultVmBehavior = "fullyAutomated"
        s = VCenterClient.cluster_settings(cluster)
        self.assertEqual(s, ClusterSettings("Metro", True, True, "fullyAutomated"))
        self.assertTrue(s.drs_fully_automated)

    def test_partially_automated_is_not_fully(self):
        self.assertFalse(ClusterSettings("c", True, True, "partiallyAutomated").drs_fully_automated)

    def test_find_rule_and_group(self):
        rule = Mock()
        rule.name = "DRS_Rule_MA_ctr1"
        group = Mock()
        group.name = "DRS_HG_MA_cluster-b"
        cluster = Mock()
        cluster.configurationEx.rule = [rule]
        cluster.configurationEx.group = [group]
        self.assertIs(VCenterClient.find_drs_rule(cluster, "DRS_Rule_MA_ctr1"), rule)
        self.assertIsNone(VCenterClient.find_drs_rule(cluster, "other"))
        self.assertIs(VCenterClient.find_group(cluster, "DRS_HG_MA_cluster-b"), group)

    def test_vm_drs_override(self):
        vm, other = Mock(), Mock()
        entry = Mock(key=vm, enabled=True, behavior="manual")
        off = Mock(key=other, enabled=False, behavior="fullyAutomated")
        cluster = Mock()
        cluster.configurationEx.drsVmConfig = [entry, off]
        self.assertEqual(VCenterClient.vm_drs_override(cluster, vm), "manual")
        self.assertEqual(VCenterClient.vm_drs_override(cluster, other), "disabled")
        self.assertIsNone(VCenterClient.vm_drs_override(cluster, Mock()))

    def test_wait_for_task_success(self):
        task = Mock()
        task.info.state = vim.TaskInfo.State.success
        task.info.result = "done"
        self.assertEqual(self.client.wait_for_task(task, "noop"), "done")

    def test_wait_for_task_error(self):
        task = Mock()
        task.info.state = vim.TaskInfo.State.error
        task.info.error.msg = "host is in maintenance"
        with self.assertRaises(VMwareError) as cm:
            self.client.wait_for_task(task, "Move vm1")
        self.assertIn("host is in maintenance", cm.exception.msg)

    def test_wait_for_task_logs_progress_between_polls(self):
        task = Mock()
        task.info.state = vim.TaskInfo.State.running
        task.info.progress = 40
        task.info.result = "moved"
        waits = []

        def finish(seconds):
            waits.append(seconds)
            task.info.state = vim.TaskInfo.State.success
            return False

        token = Mock()
        token.wait.side_effect = finish
        logger = FakeLogger()
        client = VCenterClient(logger, "vc.example", "u", "pw", task_poll_s=2.5, cancel=token)

        self.assertEqual(client.wait_for_task(task, "Move vm1"), "moved")
        self.assertEqual(waits, [2.5])
        self.assertIn("Move vm1: 40%", logger.messages("info"))

    def test_wait_for_task_cancelled(self):
        token = CancelToken()
        token.cancel()
        client = VCenterClient(FakeLogger(), "vc.example", "u", "pw", task_poll_s=30, cancel=token)
        task = Mock()
        task.info.state = vim.TaskInfo.State.running
        task.info.progress = None
        with self.assertRaises(Cancelled) as cm:
            client.wait_for_task(task, "Enter maintenance mode on esx-a1")
        self.assertEqual(cm.exception.code, 130)
        self.assertIn("esx-a1", cm.exception.msg)

    def test_not_connected(self):
        with self.assertRaises(VMwareError):
            self.client.list_hosts()

    @patch("mafailover.vmware.client.SmartConnect", side_effect=OSError("refused"))
    def test_connect_failure(self, _smart):
        with self.assertRaises(VMwareError) as cm:
            self.client.connect()
        self.assertEqual(cm.exception.context["vcenter"], "vc.example")
        self.assertIsNone(self.client.si)

    @patch("mafailover.vmware.client.Disconnect", side_effect=RuntimeError("gone"))
    def test_disconnect_is_best_effort(self, _disc):
        self.client.si = Mock()
        self.client.disconnect()
        self.assertIsNone(self.client.si)


class TestVCenterMutations(unittest.TestCase):
    def setUp(self):
        self.client = VCenterClient(FakeLogger(), "vc.example", "u", "pw", task_poll_s=0)

    def _ok_task(self, vim_mock):
        task = Mock()
        task.info.state = vim_mock.TaskInfo.State.success
        return task

    @patch("mafailover.vmware.client.vim")
    def test_set_rule_host_group(self, vim_mock):
        rule = Mock()
        rule.name = "DRS_Rule_MA_ctr1"
        cluster = Mock()
        cluster.ReconfigureComputeResource_Task.return_value = self._ok_task(vim_mock)

        self.client.set_rule_host_group(cluster, rule, "DRS_HG_MA_cluster-b")

        self.assertEqual(rule.affineHostGroupName, "DRS_HG_MA_cluster-b")
        vim_mock.cluster.RuleSpec.assert_called_once_with(operation="edit", info=rule)
        cluster.ReconfigureComputeResource_Task.assert_called_once()
        self.assertTrue(cluster.ReconfigureComputeResource_Task.call_args.kwargs["modify"])

    @patch("mafailover.vmware.client.vim")
    def test_reset_override_removes_entry(self, vim_mock):
        vm = Mock()
        cluster = Mock()
        cluster.ReconfigureComputeResource_Task.return_value = self._ok_task(vim_mock)
        self.client.reset_vm_drs_override(cluster, vm)
        vim_mock.cluster.DrsVmConfigSpec.assert_called_once_with(operation="remove", removeKey=vm)

    @patch("mafailover.vmware.client.vim")
    def test_maintenance_and_shutdown(self, vim_mock):
        host = Mock()
        host.EnterMaintenanceMode_Task.return_value = self._ok_task(vim_mock)
        host.ShutdownHost_Task.return_value = self._ok_task(vim_mock)
        self.client.enter_maintenance(host)
        self.client.shutdown_host(host)
        host.EnterMaintenanceMode_Task.assert_called_once_with(timeout=0, evacuatePoweredOffVms=False)
        host.ShutdownHost_Task.assert_called_once_with(force=True)

    def test_shutdown_guest_error(self):
        vm = Mock()
        vm.name = "app01"
        vm.ShutdownGuest.side_effect = RuntimeError("tools not running")
        with self.assertRaises(VMwareError) as cm:
            self.client.shutdown_guest(vm)
        self.assertEqual(cm.exception.context["vm"], "app01")


if __name__ == "__main__":
    unittest.main()
