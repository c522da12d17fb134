# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/failover/context.py
"""
Explicit run state shared by the failover phases.

One RunContext is built per invocation from live reads and handed to each
phase in turn; nothing here is persisted.
"""

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.polling import Poller
from ..core.utils import U
from ..prism.models import ClusterInfo, HostInfo, ProtectionDomain

PD_ALL = "all"
ACTION_MAINTENANCE = "maintenance"
ACTION_SHUTDOWN = "shutdown"
ACTIONS = (ACTION_MAINTENANCE, ACTION_SHUTDOWN)

DEFAULT_UVM_TIMER_S = 300


@dataclass(frozen=True)
class RunOptions:
    cluster: str
    pds: Tuple[str, ...] = ()
    action: Optional[str] = None
    skip_failover: bool = False
    shutdown_uvms: bool = False
    timer_s: int = DEFAULT_UVM_TIMER_S
    reset_overrides: bool = False
    re_enable_only: bool = False
    assume_yes: bool = False
    vcenter: Optional[str] = None

    @property
    def all_pds(self) -> bool:
        return not self.pds or any(p.lower() == PD_ALL for p in self.pds)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "RunOptions":
        return cls(
            cluster=str(args.cluster).strip(),
            pds=tuple(U.split_csv(getattr(args, "pd", None))),
            action=getattr(args, "action", None) or None,
            skip_failover=bool(getattr(args, "skip_failover", False)),
            shutdown_uvms=bool(getattr(args, "shutdown_uvms", False)),
            timer_s=int(getattr(args, "timer", DEFAULT_UVM_TIMER_S)),
            reset_overrides=bool(getattr(args, "reset_overrides", False)),
            re_enable_only=bool(getattr(args, "re_enable_only", False)),
            assume_yes=bool(getattr(args, "yes", False)),
            vcenter=getattr(args, "vcenter", None) or None,
        )


@dataclass(frozen=True)
class Credentials:
    prism_user: str
    prism_password: str = field(default="", repr=False)
    vcenter_user: str = ""
    vcenter_password: str = field(default="", repr=False)
    cvm_user: str = "nutanix"
    cvm_password_env: Optional[str] = None
    cvm_identity: Optional[str] = None


@dataclass(frozen=True)
class ClusterFacts:
    info: ClusterInfo
    hosts: List[HostInfo] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def host_ips(self) -> List[str]:
        return [h.hypervisor_address for h in self.hosts if h.hypervisor_address]

    @property
    def controller_ips(self) -> List[str]:
        return [h.controller_address for h in self.hosts if h.controller_address]

    @property
    def management_server(self) -> Optional[str]:
        servers = self.info.management_servers
        return servers[0] if len(servers) == 1 else None


@dataclass(frozen=True)
class RemoteSiteInfo:
    name: str
    address: str
    facts: ClusterFacts


@dataclass
class TopologyMap:
    """
    Storage host IP <-> vCenter HostSystem for both sites, plus the compute
    cluster holding every local host.
    """
    local_hosts: Dict[str, Any] = field(default_factory=dict)
    remote_hosts: Dict[str, Any] = field(default_factory=dict)
    compute_cluster: Any = None

    @staticmethod
    def _unique(hosts: Dict[str, Any]) -> List[Any]:
        out: List[Any] = []
        for h in hosts.values():
            if not any(h == seen for seen in out):
                out.append(h)
        return out

    @property
    def local_host_objects(self) -> List[Any]:
        return self._unique(self.local_hosts)

    @property
    def remote_host_objects(self) -> List[Any]:
        return self._unique(self.remote_hosts)

    def is_local(self, host: Any) -> bool:
        return host is not None and any(host == h for h in self.local_hosts.values())

    def is_remote(self, host: Any) -> bool:
        return host is not None and any(host == h for h in self.remote_hosts.values())


class DrsNaming:
    VM_GROUP = "DRS_VM_MA_{}"
    HOST_GROUP = "DRS_HG_MA_{}"
    RULE = "DRS_Rule_MA_{}"

    @classmethod
    def vm_group(cls, container: str) -> str:
        return cls.VM_GROUP.format(container)

    @classmethod
    def host_group(cls, remote_cluster: str) -> str:
        return cls.HOST_GROUP.format(remote_cluster)

    @classmethod
    def rule(cls, container: str) -> str:
        return cls.RULE.format(container)


@dataclass
class RunContext:
    logger: logging.Logger
    options: RunOptions
    poller: Poller
    local: Any = None                       # PrismClient of --cluster
    local_facts: Optional[ClusterFacts] = None
    remote: Any = None                      # PrismClient of the paired site
    remote_site: Optional[RemoteSiteInfo] = None
    vcenter: Any = None                     # VCenterClient
    pds: List[ProtectionDomain] = field(default_factory=list)
    topology: Optional[TopologyMap] = None
    started: float = field(default_factory=time.monotonic)

    @property
    def containers(self) -> List[str]:
        out: List[str] = []
        for pd in self.pds:
            if pd.storage_container and pd.storage_container not in out:
                out.append(pd.storage_container)
        return out

    def elapsed(self) -> float:
        return time.monotonic() - self.started
