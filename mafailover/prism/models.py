# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/prism/models.py
"""
Typed views of Prism Element v2 REST payloads.

Only the fields the failover needs are decoded; everything optional in the
API is optional here too.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

ROLE_ACTIVE = "Active"
ROLE_STANDBY = "Standby"
STATUS_ENABLED = "Enabled"
STATUS_DISABLED = "Disabled"
FAILURE_HANDLING_WITNESS = "Witness"


def _opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def entities(payload: Any) -> List[Mapping[str, Any]]:
    """v2 list endpoints wrap results as {"metadata": ..., "entities": [...]}."""
    if isinstance(payload, list):
        return [e for e in payload if isinstance(e, Mapping)]
    if isinstance(payload, Mapping):
        ents = payload.get("entities")
        if isinstance(ents, list):
            return [e for e in ents if isinstance(e, Mapping)]
    return []


@dataclass(frozen=True)
class ClusterInfo:
    name: str
    uuid: str
    redundancy_factor: Optional[int] = None
    upgrade_in_progress: bool = False
    management_servers: List[str] = field(default_factory=list)
    version: Optional[str] = None

    @classmethod
    def from_json(cls, d: Mapping[str, Any]) -> "ClusterInfo":
        rf_state = d.get("cluster_redundancy_state") or {}
        rf = rf_state.get("current_redundancy_factor")
        if rf is None:
            rf = rf_state.get("desired_redundancy_factor")

        version = _opt_str(d.get("version"))
        target = _opt_str(d.get("target_version"))
        upgrading = bool(d.get("is_upgrade_in_progress")) or bool(target and version and target != version)

        servers = []
        for ms in d.get("management_servers") or []:
            ip = _opt_str(ms.get("ip_address")) if isinstance(ms, Mapping) else None
            if ip and ip not in servers:
                servers.append(ip)

        return cls(
            name=str(d.get("name") or ""),
            uuid=str(d.get("uuid") or ""),
            redundancy_factor=int(rf) if rf is not None else None,
            upgrade_in_progress=upgrading,
            management_servers=servers,
            version=version,
        )


@dataclass(frozen=True)
class HostInfo:
    name: str
    uuid: str
    hypervisor_address: Optional[str] = None
    controller_address: Optional[str] = None
    ipmi_address: Optional[str] = None

    @classmethod
    def from_json(cls, d: Mapping[str, Any]) -> "HostInfo":
        return cls(
            name=str(d.get("name") or ""),
            uuid=str(d.get("uuid") or ""),
            hypervisor_address=_opt_str(d.get("hypervisor_address")),
            controller_address=_opt_str(d.get("service_vmexternal_ip")),
            ipmi_address=_opt_str(d.get("ipmi_address")),
        )


@dataclass(frozen=True)
class ProtectionDomain:
    name: str
    active: bool = False
    role: Optional[str] = None
    remote_site: Optional[str] = None
    storage_container: Optional[str] = None
    status: Optional[str] = None
    failure_handling: Optional[str] = None

    @classmethod
    def from_json(cls, d: Mapping[str, Any]) -> "ProtectionDomain":
        metro = d.get("metro_avail") or {}
        return cls(
            name=str(d.get("name") or ""),
            active=bool(d.get("active")),
            role=_opt_str(metro.get("role")),
            remote_site=_opt_str(metro.get("remote_site")),
            storage_container=_opt_str(metro.get("storage_container")),
            status=_opt_str(metro.get("status")),
            failure_handling=_opt_str(metro.get("failure_handling")),
        )

    @property
    def is_metro(self) -> bool:
        return self.role is not None

    @property
    def uses_witness(self) -> bool:
        return (self.failure_handling or "").lower() == FAILURE_HANDLING_WITNESS.lower()

    def is_role(self, role: str) -> bool:
        return (self.role or "").lower() == role.lower()

    def is_status(self, status: str) -> bool:
        return (self.status or "").lower() == status.lower()


@dataclass(frozen=True)
class RemoteSite:
    name: str
    addresses: List[str] = field(default_factory=list)
    uuid: Optional[str] = None

    @classmethod
    def from_json(cls, d: Mapping[str, Any]) -> "RemoteSite":
        ports: Dict[str, Any] = d.get("remote_ip_ports") or {}
        return cls(
            name=str(d.get("name") or ""),
            addresses=[str(ip) for ip in ports.keys()],
            uuid=_opt_str(d.get("uuid")),
        )
