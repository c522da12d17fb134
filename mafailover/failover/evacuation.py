# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/failover/evacuation.py
"""
VM evacuation through DRS.

For every storage container the DRS rule `DRS_Rule_MA_<container>` is pointed
at the remote site's host group, then the datastore's VMs are polled until
none is left on a local host. DRS moves the running VMs; powered-off VMs are
relocated directly since DRS ignores them. VMs with a DRS automation override
block DRS, and the injected OverrideDecider chooses whether to reset them.
VMs registered in another compute cluster are reported and left alone; the
wait keeps polling until the operator moves them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from rich.console import Console
from rich.prompt import Confirm

from ..core.exceptions import PreconditionError
from ..core.logger import Log
from ..core.polling import Poller
from ..vmware.client import VCenterClient, VmView
from .context import DrsNaming, TopologyMap
from .topology import TopologyResolver

# (vm name, current override) -> reset it?
OverrideDecider = Callable[[str, str], bool]


def auto_approve(vm_name: str, override: str) -> bool:
    return True


def auto_deny(vm_name: str, override: str) -> bool:
    return False


class PromptDecider:
    """Ask the operator on the terminal; asked again on every poll until approved."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(stderr=True)

    def __call__(self, vm_name: str, override: str) -> bool:
        return Confirm.ask(
            f"VM [bold]{vm_name}[/bold] has DRS automation override [yellow]{override}[/yellow]; "
            f"reset it to the cluster default?",
            default=False,
            console=self.console,
        )


def make_decider(*, reset_overrides: bool, interactive: bool) -> OverrideDecider:
    if reset_overrides:
        return auto_approve
    if interactive:
        return PromptDecider()
    return auto_deny


@dataclass
class EvacuationStatus:
    container: str
    pending: List[str] = field(default_factory=list)      # powered on, still on a local host
    satisfied: List[str] = field(default_factory=list)    # on a remote host
    foreign: List[str] = field(default_factory=list)      # other compute cluster, manual fix
    flagged: List[str] = field(default_factory=list)      # DRS override kept
    reset: List[str] = field(default_factory=list)        # DRS override cleared this poll
    relocated: List[str] = field(default_factory=list)    # powered off, moved this poll

    @property
    def done(self) -> bool:
        return not self.pending and not self.foreign

    def summary(self) -> str:
        return (
            f"{self.container}: {len(self.pending)} pending, {len(self.satisfied)} on remote, "
            f"{len(self.flagged)} override(s), {len(self.foreign)} foreign"
        )


class EvacuationCoordinator:
    def __init__(
        self,
        logger: logging.Logger,
        vcenter: VCenterClient,
        topology: TopologyMap,
        remote_cluster: str,
        poller: Poller,
        decider: OverrideDecider = auto_deny,
    ) -> None:
        self.logger = logger
        self.vcenter = vcenter
        self.topology = topology
        self.remote_cluster = remote_cluster
        self.poller = poller
        self.decider = decider
        self.last_status: Optional[EvacuationStatus] = None

    @property
    def cluster(self) -> Any:
        return self.topology.compute_cluster

    # ----------------------------
    # DRS rule
    # ----------------------------

    def update_rule(self, container: str) -> None:
        rule_name = DrsNaming.rule(container)
        vm_group = DrsNaming.vm_group(container)
        host_group = DrsNaming.host_group(self.remote_cluster)
        ctx = {"container": container, "rule": rule_name}

        rule = self.vcenter.find_drs_rule(self.cluster, rule_name)
        if rule is None:
            raise PreconditionError(msg=f"DRS rule {rule_name} does not exist", context=ctx)
        if self.vcenter.find_group(self.cluster, vm_group) is None:
            raise PreconditionError(msg=f"DRS VM group {vm_group} does not exist", context=ctx)
        if getattr(rule, "vmGroupName", None) != vm_group:
            raise PreconditionError(
                msg=f"DRS rule {rule_name} applies to VM group {getattr(rule, 'vmGroupName', None)}, expected {vm_group}",
                context=ctx,
            )
        if self.vcenter.find_group(self.cluster, host_group) is None:
            raise PreconditionError(msg=f"DRS host group {host_group} does not exist", context=ctx)

        if getattr(rule, "affineHostGroupName", None) == host_group:
            self.logger.info("DRS rule %s already targets %s", rule_name, host_group)
            return
        Log.step(self.logger, f"Pointing DRS rule {rule_name} at {host_group}")
        self.vcenter.set_rule_host_group(self.cluster, rule, host_group)

    # ----------------------------
    # polling
    # ----------------------------

    def _datastore_vms(self, container: str) -> List[VmView]:
        ds = self.vcenter.find_datastore(container)
        if ds is None:
            raise PreconditionError(msg=f"Datastore {container} not found in vCenter", context={"container": container})
        return self.vcenter.describe_vms(self.vcenter.datastore_vms(ds), self.cluster)

    def _blocking_override(self, vm: VmView, default_behavior: Optional[str]) -> Optional[str]:
        if vm.drs_override is None or vm.drs_override == default_behavior:
            return None
        return vm.drs_override

    def poll_once(self, container: str) -> EvacuationStatus:
        status = EvacuationStatus(container=container)
        default_behavior = self.vcenter.cluster_settings(self.cluster).drs_behavior
        target = TopologyResolver.first_remote_host(self.topology)

        for vm in self._datastore_vms(container):
            if self.topology.is_remote(vm.host):
                status.satisfied.append(vm.name)
                continue

            if vm.cluster is None or vm.cluster != self.cluster:
                Log.warn(self.logger, f"VM {vm.name} on {vm.host_name} belongs to another compute cluster; needs manual intervention")
                status.foreign.append(vm.name)
                continue
            if not self.topology.is_local(vm.host):
                Log.warn(self.logger, f"VM {vm.name} runs on {vm.host_name}, outside both sites; needs manual intervention")
                status.foreign.append(vm.name)
                continue

            if not vm.powered_on:
                if target is None:
                    raise PreconditionError(msg="No remote host available to relocate powered-off VMs")
                self.logger.info("Relocating powered-off VM %s to %s", vm.name, getattr(target, "name", target))
                self.vcenter.relocate_vm(vm.obj, target)
                status.relocated.append(vm.name)
                continue

            status.pending.append(vm.name)
            override = self._blocking_override(vm, default_behavior)
            if override is None:
                continue
            if self.decider(vm.name, override):
                self.logger.info("Resetting DRS override %s of %s", override, vm.name)
                self.vcenter.reset_vm_drs_override(self.cluster, vm.obj)
                status.reset.append(vm.name)
            else:
                Log.warn(self.logger, f"VM {vm.name} keeps DRS override {override}; DRS will not move it")
                status.flagged.append(vm.name)

        self.last_status = status
        return status

    def wait(self, container: str) -> EvacuationStatus:
        def pending(status: EvacuationStatus, polls: int) -> None:
            self.logger.info("%s (%s)", status.summary(), ", ".join(status.pending + status.foreign))

        return self.poller.until(
            lambda: self.poll_once(container),
            lambda s: s.done,
            what=f"evacuation of {container}",
            on_pending=pending,
        )

    def evacuate(self, containers: Sequence[str]) -> List[EvacuationStatus]:
        results: List[EvacuationStatus] = []
        for container in containers:
            Log.banner(self.logger, f"Evacuating {container}")
            self.update_rule(container)
            status = self.wait(container)
            Log.ok(self.logger, status.summary())
            results.append(status)
        return results
