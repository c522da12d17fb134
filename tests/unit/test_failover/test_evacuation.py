# SPDX-License-Identifier: LGPL-3.0-or-later
import io
import unittest
from unittest.mock import patch

from rich.console import Console

from fakes.fake_logger import FakeLogger
from fakes.fake_vcenter import FakeCluster, FakeHost
from fakes.scenario import Scenario
from mafailover.core.exceptions import PollTimeout, PreconditionError
from mafailover.core.polling import PollPolicy, Poller
from mafailover.failover.evacuation import (
    EvacuationCoordinator,
    PromptDecider,
    auto_approve,
    auto_deny,
    make_decider,
)
from mafailover.failover.topology import TopologyResolver

CTR = "ctr-PD1"


class EvacuationTestBase(unittest.TestCase):
    def _coordinator(self, vm_specs, *, decider=auto_deny, max_polls=None, moves=1):
        self.s = Scenario(vm_specs={CTR: vm_specs}, drs_moves_per_poll=moves)
        self.logger = FakeLogger()
        self.sleeps = []
        topo = TopologyResolver(self.logger, self.s.vcenter).resolve(
            [h.hypervisor_address for h in self.s.local_facts_hosts],
            [h.hypervisor_address for h in self.s.remote_facts_hosts],
        )
        poller = Poller(self.logger, PollPolicy(interval_s=15, max_polls=max_polls), sleep=self.sleeps.append)
        return EvacuationCoordinator(self.logger, self.s.vcenter, topo, "cluster-b", poller, decider)


class TestEvacuation(EvacuationTestBase):
    def test_drs_drains_the_container(self):
        coord = self._coordinator([{"name": f"app{i}"} for i in range(1, 4)])
        [status] = coord.evacuate([CTR])

        rule = self.s.compute.rules[f"DRS_Rule_MA_{CTR}"]
        self.assertEqual(rule.affineHostGroupName, "DRS_HG_MA_cluster-b")
        self.assertTrue(status.done)
        self.assertEqual(sorted(status.satisfied), ["app1", "app2", "app3"])
        for name in ("app1", "app2", "app3"):
            self.assertIn(self.s.vm(name).host, self.s.remote_hosts)
        # one VM moves per poll: three polls, two waits
        self.assertEqual(self.sleeps, [15, 15])

    def test_already_evacuated(self):
        coord = self._coordinator([{"name": "app1", "host": "remote"}])
        self.s.compute.rules[f"DRS_Rule_MA_{CTR}"].affineHostGroupName = "DRS_HG_MA_cluster-b"
        coord.evacuate([CTR])
        self.assertEqual(self.s.vcenter.names("set_rule_host_group"), [])
        self.assertEqual(self.sleeps, [])

    def test_powered_off_vm_is_relocated(self):
        coord = self._coordinator([{"name": "cold", "power": "poweredOff"}])
        status = coord.poll_once(CTR)
        self.assertEqual(status.relocated, ["cold"])
        self.assertTrue(status.done)
        self.assertIs(self.s.vm("cold").host, self.s.remote_hosts[0])

    def test_vm_in_other_cluster_holds_the_wait(self):
        stray = FakeHost("dev-esx", ["10.30.0.1"], FakeCluster("Dev"))
        coord = self._coordinator([{"name": "stray", "host": stray}, {"name": "app1"}], moves=5, max_polls=3)
        with self.assertRaises(PollTimeout):
            coord.evacuate([CTR])

        self.assertEqual(coord.last_status.foreign, ["stray"])
        self.assertEqual(coord.last_status.satisfied, ["app1"])
        self.assertFalse(coord.last_status.done)
        self.assertIs(self.s.vm("stray").host, stray)
        self.assertEqual(self.s.vcenter.names("relocate_vm"), [])
        self.assertEqual(self.sleeps, [15, 15])
        self.assertTrue(any("manual intervention" in m for m in self.logger.messages("warning")))

    def test_wait_ends_once_stray_vm_is_moved_by_hand(self):
        stray = FakeHost("dev-esx", ["10.30.0.1"], FakeCluster("Dev"))
        coord = self._coordinator([{"name": "stray", "host": stray}], max_polls=5)

        def operator_fixes(seconds):
            self.sleeps.append(seconds)
            self.s.vm("stray").host = self.s.remote_hosts[1]

        coord.poller = Poller(self.logger, PollPolicy(interval_s=15, max_polls=5), sleep=operator_fixes)
        [status] = coord.evacuate([CTR])

        self.assertTrue(status.done)
        self.assertEqual(status.foreign, [])
        self.assertEqual(status.satisfied, ["stray"])
        self.assertEqual(self.sleeps, [15])
        self.assertEqual(self.s.vcenter.names("relocate_vm"), [])

    def test_override_kept_when_denied(self):
        coord = self._coordinator([{"name": "pinned", "override": "manual"}], max_polls=4)
        with self.assertRaises(PollTimeout):
            coord.evacuate([CTR])

        self.assertEqual(coord.last_status.flagged, ["pinned"])
        self.assertEqual(coord.last_status.pending, ["pinned"])
        self.assertIn(self.s.vm("pinned").host, self.s.local_hosts)
        self.assertEqual(self.s.vcenter.names("reset_vm_drs_override"), [])
        self.assertEqual(len(self.sleeps), 3)

    def test_override_reset_when_approved(self):
        coord = self._coordinator([{"name": "pinned", "override": "manual"}], decider=auto_approve)
        [status] = coord.evacuate([CTR])

        self.assertEqual(self.s.vcenter.names("reset_vm_drs_override"), ["pinned"])
        self.assertNotIn("pinned", self.s.compute.overrides)
        self.assertEqual(status.satisfied, ["pinned"])
        self.assertEqual(self.sleeps, [15])

    def test_override_matching_cluster_default_is_not_blocking(self):
        asked = []
        coord = self._coordinator(
            [{"name": "same", "override": "fullyAutomated"}],
            decider=lambda vm, ov: asked.append(vm) or False,
        )
        status = coord.poll_once(CTR)
        self.assertEqual(status.flagged, [])
        self.assertEqual(asked, [])


class TestRuleChecks(EvacuationTestBase):
    def test_missing_rule(self):
        coord = self._coordinator([{"name": "app1"}])
        del self.s.compute.rules[f"DRS_Rule_MA_{CTR}"]
        with self.assertRaises(PreconditionError) as cm:
            coord.evacuate([CTR])
        self.assertIn("DRS rule", cm.exception.msg)
        self.assertEqual(self.s.vcenter.names("set_rule_host_group"), [])

    def test_missing_host_group(self):
        coord = self._coordinator([{"name": "app1"}])
        del self.s.compute.groups["DRS_HG_MA_cluster-b"]
        with self.assertRaises(PreconditionError) as cm:
            coord.update_rule(CTR)
        self.assertIn("DRS_HG_MA_cluster-b", cm.exception.msg)

    def test_rule_for_other_vm_group(self):
        coord = self._coordinator([{"name": "app1"}])
        self.s.compute.rules[f"DRS_Rule_MA_{CTR}"].vmGroupName = "DRS_VM_MA_other"
        with self.assertRaises(PreconditionError):
            coord.update_rule(CTR)

    def test_missing_datastore(self):
        coord = self._coordinator([{"name": "app1"}])
        self.s.vcenter.datastores.clear()
        with self.assertRaises(PreconditionError):
            coord.poll_once(CTR)


class TestDeciders(unittest.TestCase):
    def test_make_decider(self):
        self.assertIs(make_decider(reset_overrides=True, interactive=True), auto_approve)
        self.assertIs(make_decider(reset_overrides=False, interactive=False), auto_deny)
        self.assertIsInstance(make_decider(reset_overrides=False, interactive=True), PromptDecider)

    def test_prompt(self):
        console = Console(file=io.StringIO())
        with patch("mafailover.failover.evacuation.Confirm.ask", return_value=True) as ask:
            self.assertTrue(PromptDecider(console)("app1", "manual"))
        self.assertIn("app1", ask.call_args.args[0])
        self.assertIs(ask.call_args.kwargs["console"], console)
        self.assertFalse(ask.call_args.kwargs["default"])


if __name__ == "__main__":
    unittest.main()
