# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/failover/maintenance.py
"""
Post-failover host phase (--action maintenance|shutdown).

Order: guest VM check/shutdown, storage cluster stop, controller VM shutdown,
host maintenance mode, host power-off (shutdown only). Every failure aborts;
nothing is rolled back.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Any, Callable, List, Optional

from rich.console import Console
from rich.table import Table

from ..core.exceptions import PreconditionError, ShellError
from ..core.logger import Log
from ..core.polling import Poller
from ..ssh.ssh_client import SSHClient
from ..vmware.client import VCenterClient, VmView
from .context import ACTION_SHUTDOWN, ClusterFacts, TopologyMap

CVM_NAME_PATTERN = "NTNX-*-CVM"
UVM_GRACE_S = 60
CVM_SHUTDOWN_WAIT_S = 180


def is_cvm(name: str) -> bool:
    return fnmatch.fnmatchcase(name or "", CVM_NAME_PATTERN)


class MaintenanceSequencer:
    def __init__(
        self,
        logger: logging.Logger,
        vcenter: VCenterClient,
        topology: TopologyMap,
        facts: ClusterFacts,
        poller: Poller,
        ssh_factory: Callable[[str], SSHClient],
        *,
        action: str,
        shutdown_uvms: bool = False,
        timer_s: int = 300,
        uvm_grace_s: int = UVM_GRACE_S,
        cvm_wait_s: int = CVM_SHUTDOWN_WAIT_S,
        console: Optional[Console] = None,
    ) -> None:
        self.logger = logger
        self.vcenter = vcenter
        self.topology = topology
        self.facts = facts
        self.poller = poller
        self.ssh_factory = ssh_factory
        self.action = action
        self.shutdown_uvms = shutdown_uvms
        self.timer_s = int(timer_s)
        self.uvm_grace_s = int(uvm_grace_s)
        self.cvm_wait_s = int(cvm_wait_s)
        self.console = console or Console()

    @property
    def hosts(self) -> List[Any]:
        return self.topology.local_host_objects

    def _vms(self) -> List[VmView]:
        out: List[VmView] = []
        for host in self.hosts:
            out.extend(self.vcenter.describe_vms(self.vcenter.host_vms(host)))
        return out

    def running_guests(self) -> List[VmView]:
        return [vm for vm in self._vms() if vm.powered_on and not is_cvm(vm.name)]

    def cvms(self) -> List[VmView]:
        return [vm for vm in self._vms() if is_cvm(vm.name)]

    # ----------------------------
    # steps
    # ----------------------------

    def preflight_guests(self) -> None:
        running = self.running_guests()
        if not running:
            Log.ok(self.logger, "No guest VMs running on local hosts")
            return

        names = ", ".join(vm.name for vm in running)
        if not self.shutdown_uvms:
            raise PreconditionError(
                msg=f"{len(running)} guest VM(s) still running on local hosts: {names}",
                context={"vms": [vm.name for vm in running]},
            )

        Log.step(self.logger, f"Shutting down {len(running)} guest VM(s): {names}")
        for vm in running:
            self.vcenter.shutdown_guest(vm.obj)

        self.logger.info("Waiting %ss for guest shutdown", self.timer_s)
        self.poller.sleep(self.timer_s)
        self.logger.info("Waiting %ss more before forcing power off", self.uvm_grace_s)
        self.poller.sleep(self.uvm_grace_s)

        for vm in self.running_guests():
            Log.warn(self.logger, f"Forcing power off of {vm.name}")
            self.vcenter.power_off_vm(vm.obj)

    def stop_cluster(self) -> None:
        targets = self.facts.controller_ips
        if not targets:
            raise ShellError(msg=f"No controller VM address known for {self.facts.name}")
        client = self.ssh_factory(targets[0])
        Log.step(self.logger, f"Stopping storage cluster {self.facts.name} via {targets[0]}")
        client.cluster_stop()
        Log.warn(self.logger, "cluster stop is not verified; continuing with controller VM shutdown")

    def shutdown_cvms(self) -> None:
        cvms = [vm for vm in self.cvms() if vm.powered_on]
        Log.step(self.logger, f"Shutting down {len(cvms)} controller VM(s)")
        for vm in cvms:
            self.vcenter.shutdown_guest(vm.obj)
        self.logger.info("Waiting %ss for controller VMs to stop", self.cvm_wait_s)
        self.poller.sleep(self.cvm_wait_s)

    def enter_maintenance(self) -> None:
        for host in self.hosts:
            Log.step(self.logger, f"Entering maintenance mode on {getattr(host, 'name', host)}")
            self.vcenter.enter_maintenance(host)

    def power_off_hosts(self) -> None:
        for host in self.hosts:
            Log.step(self.logger, f"Powering off {getattr(host, 'name', host)}")
            self.vcenter.shutdown_host(host)

    # ----------------------------
    # driver
    # ----------------------------

    def run(self) -> None:
        Log.banner(self.logger, f"Host {self.action}")
        self.preflight_guests()
        self.stop_cluster()
        self.shutdown_cvms()
        self.enter_maintenance()
        if self.action == ACTION_SHUTDOWN:
            self.power_off_hosts()
            self.print_restart_info()
        Log.ok(self.logger, f"Local hosts of {self.facts.name} are in {self.action}")

    def restart_table(self) -> Table:
        table = Table(title=f"Restart information for {self.facts.name}")
        table.add_column("Host")
        table.add_column("Hypervisor IP")
        table.add_column("CVM IP")
        table.add_column("IPMI IP")
        for h in self.facts.hosts:
            table.add_row(h.name, h.hypervisor_address or "-", h.controller_address or "-", h.ipmi_address or "-")
        return table

    def print_restart_info(self) -> None:
        self.console.print(self.restart_table())
