# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/failover/pd_engine.py
"""
Protection domain failover.

Each domain walks an explicit state machine:

    Active@Local -> PromotePending -> Active@Remote
        -> DisablePending -> Disabled@Local      (skipped with a Witness)
        -> ReEnablePending -> Enabled@Remote

The re-enable-only entry point instead goes
Active@Local -> ReEnablePending -> Enabled@Local, or Skipped when the domain
is not Active+Disabled. Domains are processed one after the other; every
mutation is followed by a poll of the control plane until it reports the
target state. Any REST failure propagates and stops the run.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence

from ..core.exceptions import Fatal
from ..core.logger import Log
from ..core.polling import Poller
from ..prism.client import PrismClient
from ..prism.models import ROLE_ACTIVE, STATUS_DISABLED, STATUS_ENABLED, ProtectionDomain


class PdState(str, Enum):
    ACTIVE_LOCAL = "Active@Local"
    PROMOTE_PENDING = "PromotePending"
    ACTIVE_REMOTE = "Active@Remote"
    DISABLE_PENDING = "DisablePending"
    DISABLED_LOCAL = "Disabled@Local"
    RE_ENABLE_PENDING = "ReEnablePending"
    ENABLED_REMOTE = "Enabled@Remote"
    ENABLED_LOCAL = "Enabled@Local"
    SKIPPED = "Skipped"

    def __str__(self) -> str:
        return self.value


_TRANSITIONS: Dict[PdState, FrozenSet[PdState]] = {
    PdState.ACTIVE_LOCAL: frozenset({PdState.PROMOTE_PENDING, PdState.RE_ENABLE_PENDING, PdState.SKIPPED}),
    PdState.PROMOTE_PENDING: frozenset({PdState.ACTIVE_REMOTE}),
    PdState.ACTIVE_REMOTE: frozenset({PdState.DISABLE_PENDING, PdState.RE_ENABLE_PENDING}),
    PdState.DISABLE_PENDING: frozenset({PdState.DISABLED_LOCAL}),
    PdState.DISABLED_LOCAL: frozenset({PdState.RE_ENABLE_PENDING}),
    PdState.RE_ENABLE_PENDING: frozenset({PdState.ENABLED_REMOTE, PdState.ENABLED_LOCAL}),
    PdState.ENABLED_REMOTE: frozenset(),
    PdState.ENABLED_LOCAL: frozenset(),
    PdState.SKIPPED: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, nxt in _TRANSITIONS.items() if not nxt)


class PdStateMachine:
    def __init__(self, pd: ProtectionDomain, start: PdState = PdState.ACTIVE_LOCAL) -> None:
        self.pd = pd
        self.state = start
        self.history: List[PdState] = [start]

    def __repr__(self) -> str:
        return f"PdStateMachine({self.pd.name}, {self.state})"

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, to: PdState) -> None:
        if to not in _TRANSITIONS[self.state]:
            raise Fatal(
                msg=f"Illegal protection domain transition {self.state} -> {to} for {self.pd.name}",
                context={"pd": self.pd.name, "history": [str(s) for s in self.history]},
            )
        self.state = to
        self.history.append(to)


class PdFailoverEngine:
    def __init__(
        self,
        logger: logging.Logger,
        local: PrismClient,
        remote: Optional[PrismClient],
        poller: Poller,
    ) -> None:
        self.logger = logger
        self.local = local
        self.remote = remote
        self.poller = poller

    # ----------------------------
    # polling
    # ----------------------------

    def _wait_for(
        self,
        client: PrismClient,
        name: str,
        predicate: Callable[[ProtectionDomain], bool],
        what: str,
    ) -> ProtectionDomain:
        def probe() -> Optional[ProtectionDomain]:
            return client.get_protection_domain(name)

        def pending(pd: Optional[ProtectionDomain], polls: int) -> None:
            if pd is None:
                Log.warn(self.logger, f"{name} not listed on {client.host} yet")
            else:
                Log.trace(self.logger, "%s on %s: role=%s status=%s", name, client.host, pd.role, pd.status)

        return self.poller.until(
            probe,
            lambda pd: pd is not None and predicate(pd),
            what=f"{what} ({client.host})",
            on_pending=pending,
        )

    # ----------------------------
    # main failover path
    # ----------------------------

    def failover(self, pd: ProtectionDomain) -> PdStateMachine:
        if self.remote is None:
            raise Fatal(msg="Failover needs the remote site client")

        sm = PdStateMachine(pd)
        Log.step(self.logger, f"Failing over {pd.name} to {self.remote.host}", witness=pd.uses_witness)

        sm.advance(PdState.PROMOTE_PENDING)
        self.remote.promote(pd.name, force=True)
        self._wait_for(self.remote, pd.name, lambda x: x.is_role(ROLE_ACTIVE), f"{pd.name} role Active")
        sm.advance(PdState.ACTIVE_REMOTE)

        if pd.uses_witness:
            self.logger.info("%s uses a Witness; metro disable not needed", pd.name)
        else:
            sm.advance(PdState.DISABLE_PENDING)
            self.local.metro_disable(pd.name)
            self._wait_for(self.local, pd.name, lambda x: x.is_status(STATUS_DISABLED), f"{pd.name} status Disabled")
            sm.advance(PdState.DISABLED_LOCAL)

        sm.advance(PdState.RE_ENABLE_PENDING)
        self.remote.metro_enable(pd.name, re_enable=True)
        self._wait_for(self.remote, pd.name, lambda x: x.is_status(STATUS_ENABLED), f"{pd.name} status Enabled")
        sm.advance(PdState.ENABLED_REMOTE)

        Log.ok(self.logger, f"{pd.name} failed over ({' -> '.join(str(s) for s in sm.history)})")
        return sm

    def failover_all(self, pds: Sequence[ProtectionDomain]) -> List[PdStateMachine]:
        return [self.failover(pd) for pd in pds]

    # ----------------------------
    # re-enable only
    # ----------------------------

    @staticmethod
    def re_enable_candidate(pd: ProtectionDomain) -> bool:
        return pd.is_role(ROLE_ACTIVE) and pd.is_status(STATUS_DISABLED)

    def re_enable_local_one(self, pd: ProtectionDomain) -> PdStateMachine:
        sm = PdStateMachine(pd)
        if not self.re_enable_candidate(pd):
            Log.warn(self.logger, f"Skipping {pd.name}: role={pd.role} status={pd.status}, expected Active+Disabled")
            sm.advance(PdState.SKIPPED)
            return sm

        Log.step(self.logger, f"Re-enabling {pd.name} on {self.local.host}")
        sm.advance(PdState.RE_ENABLE_PENDING)
        self.local.metro_enable(pd.name, re_enable=True)
        self._wait_for(self.local, pd.name, lambda x: x.is_status(STATUS_ENABLED), f"{pd.name} status Enabled")
        sm.advance(PdState.ENABLED_LOCAL)
        Log.ok(self.logger, f"{pd.name} re-enabled")
        return sm

    def re_enable_local(self, pds: Sequence[ProtectionDomain]) -> List[PdStateMachine]:
        results = [self.re_enable_local_one(pd) for pd in pds]
        if all(sm.state == PdState.SKIPPED for sm in results):
            Log.warn(self.logger, "No selected protection domain was Active+Disabled; nothing re-enabled")
        return results
