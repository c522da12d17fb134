# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/failover/topology.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..core.exceptions import PreconditionError
from ..core.logger import Log
from ..vmware.client import ClusterSettings, VCenterClient
from .context import TopologyMap


class TopologyResolver:
    """
    Match storage-cluster host IPs to vCenter hosts and find the compute
    cluster holding the local ones.
    """

    def __init__(self, logger: logging.Logger, vcenter: VCenterClient) -> None:
        self.logger = logger
        self.vcenter = vcenter

    def _match(self, hosts: List[Any], ips: Iterable[str]) -> Dict[str, Any]:
        wanted = set(ips)
        out: Dict[str, Any] = {}
        for host in hosts:
            for ip in self.vcenter.host_addresses(host):
                if ip in wanted and ip not in out:
                    out[ip] = host
        return out

    def resolve(self, local_ips: Iterable[str], remote_ips: Iterable[str]) -> TopologyMap:
        hosts = self.vcenter.list_hosts()
        local = self._match(hosts, local_ips)
        remote = self._match(hosts, remote_ips)

        if not local:
            raise PreconditionError(msg="No vCenter host matches the local cluster's host addresses")
        if not remote:
            raise PreconditionError(msg="No vCenter host matches the remote cluster's host addresses")

        topo = TopologyMap(local_hosts=local, remote_hosts=remote)

        clusters: List[Any] = []
        for host in topo.local_host_objects:
            cl = self.vcenter.host_cluster(host)
            if cl is None:
                raise PreconditionError(
                    msg=f"Host {getattr(host, 'name', host)} is not part of a compute cluster",
                    context={"host": getattr(host, "name", None)},
                )
            if not any(cl == seen for seen in clusters):
                clusters.append(cl)
        if len(clusters) != 1:
            names = [str(getattr(cl, "name", cl)) for cl in clusters]
            raise PreconditionError(
                msg=f"Local hosts belong to several compute clusters: {', '.join(names)}",
                context={"clusters": names},
            )
        topo.compute_cluster = clusters[0]

        self.logger.info(
            "Topology: %d local host(s), %d remote host(s), compute cluster %s",
            len(topo.local_host_objects),
            len(topo.remote_host_objects),
            getattr(topo.compute_cluster, "name", "?"),
        )
        for ip, host in sorted(local.items()):
            Log.trace(self.logger, "local %s -> %s", ip, getattr(host, "name", host))
        for ip, host in sorted(remote.items()):
            Log.trace(self.logger, "remote %s -> %s", ip, getattr(host, "name", host))
        return topo

    def validate(self, topo: TopologyMap) -> ClusterSettings:
        """HA on, DRS on, DRS fully automated."""
        settings = self.vcenter.cluster_settings(topo.compute_cluster)
        ctx = {"cluster": settings.name}
        if not settings.ha_enabled:
            raise PreconditionError(msg=f"HA is disabled on compute cluster {settings.name}", context=ctx)
        if not settings.drs_enabled:
            raise PreconditionError(msg=f"DRS is disabled on compute cluster {settings.name}", context=ctx)
        if not settings.drs_fully_automated:
            raise PreconditionError(
                msg=f"DRS on compute cluster {settings.name} is {settings.drs_behavior}, not fully automated",
                context=ctx,
            )
        Log.ok(self.logger, f"Compute cluster {settings.name}: HA on, DRS fully automated")
        return settings

    def resolve_and_validate(
        self,
        local_ips: Iterable[str],
        remote_ips: Iterable[str],
        *,
        check_drs: bool = True,
    ) -> TopologyMap:
        topo = self.resolve(local_ips, remote_ips)
        if check_drs:
            self.validate(topo)
        return topo

    @staticmethod
    def first_remote_host(topo: TopologyMap) -> Optional[Any]:
        hosts = topo.remote_host_objects
        return hosts[0] if hosts else None
