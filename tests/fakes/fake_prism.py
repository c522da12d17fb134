# SPDX-License-Identifier: LGPL-3.0-or-later
"""
In-memory Prism Element control plane.

Mutations (promote / metro disable / metro enable) become visible after
`lag` reads of the protection domain, so poll loops see pending states.
"""
from dataclasses import replace

from mafailover.prism.models import ClusterInfo, HostInfo, ProtectionDomain, RemoteSite


def make_cluster(name, *, rf=2, upgrading=False, vcenter="10.0.0.5", uuid=None):
    return ClusterInfo(
        name=name,
        uuid=uuid or f"uuid-{name}",
        redundancy_factor=rf,
        upgrade_in_progress=upgrading,
        management_servers=[vcenter] if vcenter else [],
        version="6.5.2",
    )


def make_hosts(prefix, count, *, base=10):
    return [
        HostInfo(
            name=f"{prefix}-esx{i}",
            uuid=f"{prefix}-{i}",
            hypervisor_address=f"10.{base}.0.{i}",
            controller_address=f"10.{base}.1.{i}",
            ipmi_address=f"10.{base}.2.{i}",
        )
        for i in range(1, count + 1)
    ]


def make_pd(name, *, role="Active", status="Enabled", remote_site="site-b", container=None,
            witness=False, active=True):
    return ProtectionDomain(
        name=name,
        active=active,
        role=role,
        remote_site=remote_site,
        storage_container=container or f"ctr-{name}",
        status=status,
        failure_handling="Witness" if witness else "Automatic",
    )


class FakePrism:
    def __init__(self, host, *, cluster=None, hosts=None, pds=None, remote_sites=None, lag=1):
        self.host = host
        self.cluster = cluster or make_cluster(f"cluster-{host}")
        self.hosts = list(hosts or [])
        self.pds = {pd.name: pd for pd in (pds or [])}
        self.remote_sites = list(remote_sites or [])
        self.lag = lag
        self.calls = []
        self.closed = False
        self._pending = []

    # reads

    def get_cluster(self):
        self.calls.append(("get_cluster",))
        return self.cluster

    def get_hosts(self):
        self.calls.append(("get_hosts",))
        return list(self.hosts)

    def get_protection_domains(self):
        self.calls.append(("get_protection_domains",))
        return list(self.pds.values())

    def get_protection_domain(self, name):
        self.calls.append(("get_protection_domain", name))
        still = []
        for entry in self._pending:
            if entry[0] <= 0:
                self._apply(entry[1], entry[2])
            else:
                entry[0] -= 1
                still.append(entry)
        self._pending = still
        return self.pds.get(name)

    def get_remote_sites(self):
        self.calls.append(("get_remote_sites",))
        return list(self.remote_sites)

    # mutations

    def _apply(self, name, changes):
        if name in self.pds:
            self.pds[name] = replace(self.pds[name], **changes)

    def _schedule(self, name, **changes):
        if self.lag <= 0:
            self._apply(name, changes)
        else:
            self._pending.append([self.lag, name, changes])

    def promote(self, name, force=True):
        self.calls.append(("promote", name))
        self._schedule(name, role="Active")

    def metro_disable(self, name):
        self.calls.append(("metro_disable", name))
        self._schedule(name, status="Disabled")

    def metro_enable(self, name, re_enable=True):
        self.calls.append(("metro_enable", name))
        self._schedule(name, status="Enabled")

    def close(self):
        self.closed = True

    @property
    def mutations(self):
        return [c for c in self.calls if c[0] in ("promote", "metro_disable", "metro_enable")]


def remote_site(name, address):
    return RemoteSite(name=name, addresses=[address], uuid=f"uuid-{name}")
