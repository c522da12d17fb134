# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/failover/preflight.py
"""
Checks run before the first mutating call, and protection domain selection.

Every failure here is a PreconditionError: nothing has been changed yet, so
aborting leaves both sites as they were.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..core.exceptions import PreconditionError
from ..core.logger import Log
from ..prism.models import ROLE_ACTIVE, STATUS_ENABLED, ProtectionDomain, RemoteSite
from .context import ClusterFacts, RunOptions

MIN_REDUNDANCY_FACTOR = 2


def check_cluster(logger: logging.Logger, facts: ClusterFacts) -> None:
    info = facts.info
    ctx = {"cluster": info.name}

    if info.redundancy_factor is None or info.redundancy_factor < MIN_REDUNDANCY_FACTOR:
        raise PreconditionError(
            msg=f"Cluster {info.name} redundancy factor is {info.redundancy_factor}; "
                f"at least {MIN_REDUNDANCY_FACTOR} is required",
            context=ctx,
        )
    if info.upgrade_in_progress:
        raise PreconditionError(msg=f"Cluster {info.name} has an upgrade in progress", context=ctx)

    servers = info.management_servers
    if len(servers) != 1:
        raise PreconditionError(
            msg=f"Cluster {info.name} must have exactly one registered management server "
                f"(found {len(servers)}: {', '.join(servers) or 'none'})",
            context=ctx,
        )
    if not facts.host_ips:
        raise PreconditionError(msg=f"Cluster {info.name} reports no hypervisor host addresses", context=ctx)

    Log.ok(logger, f"Cluster {info.name}: RF{info.redundancy_factor}, {len(facts.hosts)} host(s), vCenter {servers[0]}")


def check_same_management_server(local: ClusterFacts, remote: ClusterFacts) -> str:
    a, b = local.management_server, remote.management_server
    if a != b:
        raise PreconditionError(
            msg=f"Clusters {local.name} and {remote.name} are registered to different management servers ({a} vs {b})",
            context={"local": a, "remote": b},
        )
    return a or ""


def check_vcenter_override(registered: str, override: str) -> None:
    if override and override != registered:
        raise PreconditionError(
            msg=f"--vcenter {override} does not match the registered management server {registered}",
            context={"registered": registered},
        )


def _pick_by_name(
    candidates: Sequence[ProtectionDomain],
    names: Sequence[str],
    cluster: str,
    wanted: str,
) -> List[ProtectionDomain]:
    by_name = {pd.name: pd for pd in candidates}
    missing = [n for n in names if n not in by_name]
    if missing:
        raise PreconditionError(
            msg=f"Protection domain(s) {', '.join(missing)} not {wanted} on {cluster}",
            context={"cluster": cluster, "missing": missing},
        )
    return [by_name[n] for n in names]


def select_protection_domains(
    logger: logging.Logger,
    pds: Sequence[ProtectionDomain],
    options: RunOptions,
) -> List[ProtectionDomain]:
    """
    Normal run: active metro domains holding the Active role.
    --skip-failover: metro domains with status Enabled.
    --re-enable-only: every metro domain; the engine skips those not Active+Disabled.
    Named domains must all be part of the candidate set.
    """
    metro = [pd for pd in pds if pd.is_metro]

    if options.re_enable_only:
        candidates = metro
        wanted = "metro protection domains"
    elif options.skip_failover:
        candidates = [pd for pd in metro if pd.is_status(STATUS_ENABLED)]
        wanted = "Enabled"
    else:
        candidates = [pd for pd in metro if pd.active and pd.is_role(ROLE_ACTIVE)]
        wanted = "Active"

    if options.all_pds:
        selected = list(candidates)
    else:
        selected = _pick_by_name(candidates, options.pds, options.cluster, wanted)

    if not selected:
        raise PreconditionError(
            msg=f"No {wanted} metro protection domains on {options.cluster}",
            context={"cluster": options.cluster},
        )

    logger.info("Selected %d protection domain(s): %s", len(selected), ", ".join(pd.name for pd in selected))
    return selected


def unique_remote_site(pds: Sequence[ProtectionDomain]) -> str:
    names: List[str] = []
    for pd in pds:
        if pd.remote_site and pd.remote_site not in names:
            names.append(pd.remote_site)
    if len(names) != 1:
        if not names:
            raise PreconditionError(msg="Selected protection domains have no remote site")
        raise PreconditionError(
            msg=f"Selected protection domains point to different remote sites: {', '.join(names)}",
            context={"remote_sites": names},
        )
    return names[0]


def remote_site_address(sites: Sequence[RemoteSite], name: str) -> str:
    for site in sites:
        if site.name == name:
            if not site.addresses:
                raise PreconditionError(msg=f"Remote site {name} has no address", context={"remote_site": name})
            return site.addresses[0]
    raise PreconditionError(msg=f"Remote site {name} is not defined", context={"remote_site": name})


def check_containers(pds: Sequence[ProtectionDomain]) -> None:
    unbound = [pd.name for pd in pds if not pd.storage_container]
    if unbound:
        raise PreconditionError(
            msg=f"Protection domain(s) without a storage container: {', '.join(unbound)}",
            context={"pds": unbound},
        )
