# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/vmware/client.py
"""
vCenter client for the failover: hosts, clusters, DRS rules/groups/overrides,
VM placement and power, host maintenance and power.
"""

from __future__ import annotations

import logging
import socket
import ssl
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim

from ..core.exceptions import Cancelled, VMwareError
from ..core.polling import CancelToken

POWERED_ON = "poweredOn"
POWERED_OFF = "poweredOff"
FULLY_AUTOMATED = "fullyAutomated"


@dataclass(frozen=True)
class ClusterSettings:
    name: str
    ha_enabled: bool
    drs_enabled: bool
    drs_behavior: Optional[str]

    @property
    def drs_fully_automated(self) -> bool:
        return (self.drs_behavior or "") == FULLY_AUTOMATED


@dataclass
class VmView:
    """Point-in-time snapshot of the VM attributes the evacuation looks at."""
    name: str
    obj: Any
    host: Any
    host_name: Optional[str]
    cluster: Any
    power_state: str
    drs_override: Optional[str] = None

    @property
    def powered_on(self) -> bool:
        return self.power_state == POWERED_ON


def _enum_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(v)


class VCenterClient:
    """
    vSphere/vCenter session held for the whole run.
    """

    def __init__(
        self,
        logger: logging.Logger,
        host: str,
        user: str,
        password: str,
        *,
        port: int = 443,
        insecure: bool = True,
        timeout: Optional[float] = None,
        task_poll_s: float = 2.0,
        cancel: Optional[CancelToken] = None,
    ) -> None:
        self.logger = logger
        self.host = (host or "").strip()
        self.user = (user or "").strip()
        self.password = password or ""
        self.port = int(port)
        self.insecure = bool(insecure)
        self.timeout = timeout
        self.task_poll_s = float(task_poll_s)
        self.cancel = cancel or CancelToken()

        self.si: Any = None

    def __repr__(self) -> str:
        return f"VCenterClient({self.host}:{self.port})"

    # Context managers

    def __enter__(self) -> "VCenterClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.disconnect()
        return False

    # Connection

    def _ssl_context(self) -> ssl.SSLContext:
        """
        TLS context for vCenter. insecure=True disables certificate validation
        (self-signed management endpoints).
        """
        if self.insecure:
            ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            ctx.minimum_version = ssl.TLSVersion.TLSv1_2
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            return ctx
        return ssl.create_default_context()

    def connect(self) -> None:
        ctx = self._ssl_context()
        old_timeout = socket.getdefaulttimeout()
        try:
            if self.timeout is not None:
                socket.setdefaulttimeout(self.timeout)
            self.si = SmartConnect(
                host=self.host,
                user=self.user,
                pwd=self.password,
                port=self.port,
                sslContext=ctx,
            )
        except Exception as e:
            self.si = None
            raise VMwareError(
                msg=f"Failed to connect to vCenter {self.host}: {e}",
                cause=e,
                context={"vcenter": self.host, "user": self.user},
            ) from e
        finally:
            socket.setdefaulttimeout(old_timeout)
        self.logger.info("Connected to vCenter: %s:%s", self.host, self.port)

    def disconnect(self) -> None:
        """Best-effort: never raises."""
        try:
            if self.si is not None:
                Disconnect(self.si)
                self.logger.info("Disconnected from vCenter %s", self.host)
        except Exception as e:
            self.logger.error("Error during vCenter disconnect: %s", e)
        finally:
            self.si = None

    def _content(self) -> Any:
        if not self.si:
            raise VMwareError(msg="Not connected to vCenter", context={"vcenter": self.host})
        try:
            return self.si.RetrieveContent()
        except Exception as e:
            raise VMwareError(msg=f"Failed to retrieve vCenter content: {e}", cause=e) from e

    def _list(self, vim_type: Any) -> List[Any]:
        content = self._content()
        view = content.viewManager.CreateContainerView(content.rootFolder, [vim_type], True)
        try:
            return list(view.view)
        finally:
            try:
                view.Destroy()
            except Exception:
                pass

    # Tasks

    def wait_for_task(self, task: Any, what: str) -> Any:
        """
        Block until a vSphere task ends; raise VMwareError on failure.

        Cancelling the run's CancelToken ends the wait between two state reads
        with Cancelled; the vSphere task itself keeps running on the server.
        """
        last_progress = None
        while task.info.state not in (vim.TaskInfo.State.success, vim.TaskInfo.State.error):
            progress = getattr(task.info, "progress", None)
            if progress is not None and progress != last_progress:
                self.logger.info("%s: %s%%", what, progress)
                last_progress = progress
            if self.cancel.wait(self.task_poll_s):
                raise Cancelled(msg=f"Cancelled while waiting for {what}", context={"task": what})
        if task.info.state == vim.TaskInfo.State.error:
            err = task.info.error
            detail = getattr(err, "msg", None) or str(err)
            raise VMwareError(msg=f"{what} failed: {detail}", context={"task": what})
        return task.info.result

    # Hosts / clusters

    def list_hosts(self) -> List[Any]:
        return self._list(vim.HostSystem)

    @staticmethod
    def host_addresses(host: Any) -> List[str]:
        """IPv4/IPv6 addresses of every vmkernel interface (plus the name when it is an IP)."""
        out: List[str] = []
        network = getattr(getattr(host, "config", None), "network", None)
        for vnic in getattr(network, "vnic", None) or []:
            ip = getattr(getattr(getattr(vnic, "spec", None), "ip", None), "ipAddress", None)
            if ip and ip not in out:
                out.append(str(ip))
        name = str(getattr(host, "name", "") or "")
        if name and name not in out:
            out.append(name)
        return out

    @staticmethod
    def host_cluster(host: Any) -> Any:
        parent = getattr(host, "parent", None)
        if parent is None or not isinstance(parent, vim.ClusterComputeResource):
            return None
        return parent

    @staticmethod
    def cluster_settings(cluster: Any) -> ClusterSettings:
        cfg = getattr(cluster, "configurationEx", None) or getattr(cluster, "configuration", None)
        das = getattr(cfg, "dasConfig", None)
        drs = getattr(cfg, "drsConfig", None)
        return ClusterSettings(
            name=str(getattr(cluster, "name", "")),
            ha_enabled=bool(getattr(das, "enabled", False)),
            drs_enabled=bool(getattr(drs, "enabled", False)),
            drs_behavior=_enum_str(getattr(drs, "defaultVmBehavior", None)),
        )

    # DRS rules / groups / VM overrides

    @staticmethod
    def find_drs_rule(cluster: Any, name: str) -> Any:
        for rule in getattr(cluster.configurationEx, "rule", None) or []:
            if getattr(rule, "name", None) == name:
                return rule
        return None

    @staticmethod
    def find_group(cluster: Any, name: str) -> Any:
        for group in getattr(cluster.configurationEx, "group", None) or []:
            if getattr(group, "name", None) == name:
                return group
        return None

    def _reconfigure(self, cluster: Any, spec: Any, what: str) -> None:
        try:
            task = cluster.ReconfigureComputeResource_Task(spec, modify=True)
        except Exception as e:
            raise VMwareError(msg=f"{what} failed: {e}", cause=e, context={"cluster": cluster.name}) from e
        self.wait_for_task(task, what)

    def set_rule_host_group(self, cluster: Any, rule: Any, host_group: str) -> None:
        rule.affineHostGroupName = host_group
        spec = vim.cluster.ConfigSpecEx()
        spec.rulesSpec = [vim.cluster.RuleSpec(operation="edit", info=rule)]
        self._reconfigure(cluster, spec, f"Update DRS rule {rule.name} -> {host_group}")

    @staticmethod
    def vm_drs_override(cluster: Any, vm: Any) -> Optional[str]:
        """
        The VM's DRS automation override, or None when it follows the cluster
        default. A disabled entry reports as "disabled".
        """
        cfg = getattr(cluster, "configurationEx", None)
        for entry in getattr(cfg, "drsVmConfig", None) or []:
            if getattr(entry, "key", None) == vm:
                if getattr(entry, "enabled", True) is False:
                    return "disabled"
                return _enum_str(getattr(entry, "behavior", None))
        return None

    def reset_vm_drs_override(self, cluster: Any, vm: Any) -> None:
        spec = vim.cluster.ConfigSpecEx()
        spec.drsVmConfigSpec = [vim.cluster.DrsVmConfigSpec(operation="remove", removeKey=vm)]
        self._reconfigure(cluster, spec, f"Reset DRS override of {vm.name}")

    # Datastores / VMs

    def find_datastore(self, name: str) -> Any:
        for ds in self._list(vim.Datastore):
            if getattr(ds, "name", None) == name:
                return ds
        return None

    @staticmethod
    def datastore_vms(datastore: Any) -> List[Any]:
        return list(getattr(datastore, "vm", None) or [])

    @staticmethod
    def host_vms(host: Any) -> List[Any]:
        return list(getattr(host, "vm", None) or [])

    def describe_vm(self, vm: Any, cluster: Any = None) -> VmView:
        runtime = getattr(vm, "runtime", None)
        host = getattr(runtime, "host", None)
        vm_cluster = self.host_cluster(host) if host is not None else None
        return VmView(
            name=str(getattr(vm, "name", "")),
            obj=vm,
            host=host,
            host_name=getattr(host, "name", None),
            cluster=vm_cluster,
            power_state=_enum_str(getattr(runtime, "powerState", None)) or "unknown",
            drs_override=self.vm_drs_override(cluster, vm) if cluster is not None else None,
        )

    def describe_vms(self, vms: Iterable[Any], cluster: Any = None) -> List[VmView]:
        return [self.describe_vm(vm, cluster) for vm in vms]

    # Mutations

    def relocate_vm(self, vm: Any, host: Any) -> None:
        spec = vim.vm.RelocateSpec()
        spec.host = host
        pool = getattr(getattr(host, "parent", None), "resourcePool", None)
        if pool is not None:
            spec.pool = pool
        try:
            task = vm.RelocateVM_Task(spec)
        except Exception as e:
            raise VMwareError(msg=f"Move of {vm.name} to {host.name} failed: {e}", cause=e) from e
        self.wait_for_task(task, f"Move {vm.name} to {host.name}")

    def shutdown_guest(self, vm: Any) -> None:
        try:
            vm.ShutdownGuest()
        except Exception as e:
            raise VMwareError(msg=f"Guest shutdown of {vm.name} failed: {e}", cause=e, context={"vm": vm.name}) from e

    def power_off_vm(self, vm: Any) -> None:
        try:
            task = vm.PowerOffVM_Task()
        except Exception as e:
            raise VMwareError(msg=f"Power off of {vm.name} failed: {e}", cause=e, context={"vm": vm.name}) from e
        self.wait_for_task(task, f"Power off {vm.name}")

    def enter_maintenance(self, host: Any) -> None:
        try:
            task = host.EnterMaintenanceMode_Task(timeout=0, evacuatePoweredOffVms=False)
        except Exception as e:
            raise VMwareError(msg=f"Maintenance mode for {host.name} failed: {e}", cause=e) from e
        self.wait_for_task(task, f"Enter maintenance mode on {host.name}")

    def shutdown_host(self, host: Any) -> None:
        try:
            task = host.ShutdownHost_Task(force=True)
        except Exception as e:
            raise VMwareError(msg=f"Power off of host {host.name} failed: {e}", cause=e) from e
        self.wait_for_task(task, f"Power off host {host.name}")
