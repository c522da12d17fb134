# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/failover/orchestrator.py
"""
Outer driver of a planned metro failover.

    facts/preflight -> remote site -> vCenter -> topology
        -> (re-enable only) | (evacuation -> protection domain failover)
        -> optional maintenance/shutdown

Client construction goes through factories so the whole flow can run
against fakes. Sessions are released on every exit path.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, List, Optional

from rich.console import Console

from ..core.exceptions import MaFailoverError
from ..core.logger import Log
from ..core.polling import CancelToken, PollPolicy, Poller
from ..core.utils import U
from ..prism.client import PrismClient
from ..ssh.ssh_client import SSHClient
from ..ssh.ssh_config import SSHConfig
from ..vmware.client import VCenterClient
from . import preflight
from .context import ClusterFacts, Credentials, RemoteSiteInfo, RunContext, RunOptions
from .evacuation import EvacuationCoordinator, OverrideDecider, make_decider
from .maintenance import MaintenanceSequencer
from .pd_engine import PdFailoverEngine, PdStateMachine
from .topology import TopologyResolver


class FailoverOrchestrator:
    def __init__(
        self,
        logger: logging.Logger,
        options: RunOptions,
        credentials: Credentials,
        *,
        poll_policy: Optional[PollPolicy] = None,
        cancel: Optional[CancelToken] = None,
        sleep: Optional[Callable[[float], None]] = None,
        prism_factory: Optional[Callable[[str], Any]] = None,
        vcenter_factory: Optional[Callable[[str], Any]] = None,
        ssh_factory: Optional[Callable[[str], Any]] = None,
        decider: Optional[OverrideDecider] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.logger = logger
        self.options = options
        self.credentials = credentials
        self.poller = Poller(logger, poll_policy, cancel=cancel, sleep=sleep)
        self.prism_factory = prism_factory or self._prism_client
        self.vcenter_factory = vcenter_factory or self._vcenter_client
        self.ssh_factory = ssh_factory or self._ssh_client
        self.decider = decider or make_decider(
            reset_overrides=options.reset_overrides,
            interactive=not options.assume_yes and sys.stdin.isatty(),
        )
        self.console = console
        self.results: List[PdStateMachine] = []

    # ----------------------------
    # default client factories
    # ----------------------------

    def _prism_client(self, host: str) -> PrismClient:
        c = self.credentials
        return PrismClient(self.logger, host, c.prism_user, c.prism_password)

    def _vcenter_client(self, host: str) -> VCenterClient:
        c = self.credentials
        return VCenterClient(self.logger, host, c.vcenter_user, c.vcenter_password, cancel=self.poller.cancel)

    def _ssh_client(self, host: str) -> SSHClient:
        c = self.credentials
        cfg = SSHConfig(host=host, user=c.cvm_user, identity=c.cvm_identity, password_env=c.cvm_password_env)
        return SSHClient(self.logger, cfg)

    # ----------------------------
    # phases
    # ----------------------------

    @staticmethod
    def _facts(client: Any) -> ClusterFacts:
        return ClusterFacts(info=client.get_cluster(), hosts=client.get_hosts())

    def prepare(self, ctx: RunContext) -> None:
        opts = self.options
        Log.banner(self.logger, f"Gathering facts for {opts.cluster}")

        ctx.local = self.prism_factory(opts.cluster)
        ctx.local_facts = self._facts(ctx.local)
        preflight.check_cluster(self.logger, ctx.local_facts)

        ctx.pds = preflight.select_protection_domains(self.logger, ctx.local.get_protection_domains(), opts)
        if not opts.re_enable_only and not opts.skip_failover:
            preflight.check_containers(ctx.pds)

        site = preflight.unique_remote_site(ctx.pds)
        address = preflight.remote_site_address(ctx.local.get_remote_sites(), site)
        ctx.remote = self.prism_factory(address)
        remote_facts = self._facts(ctx.remote)
        preflight.check_cluster(self.logger, remote_facts)
        ctx.remote_site = RemoteSiteInfo(name=site, address=address, facts=remote_facts)
        self.logger.info("Remote site %s -> cluster %s (%s)", site, remote_facts.name, address)

        registered = preflight.check_same_management_server(ctx.local_facts, remote_facts)
        if opts.vcenter:
            preflight.check_vcenter_override(registered, opts.vcenter)

        ctx.vcenter = self.vcenter_factory(opts.vcenter or registered)
        ctx.vcenter.connect()

        resolver = TopologyResolver(self.logger, ctx.vcenter)
        ctx.topology = resolver.resolve_and_validate(
            ctx.local_facts.host_ips,
            remote_facts.host_ips,
            check_drs=not opts.re_enable_only,
        )

    def re_enable(self, ctx: RunContext) -> None:
        Log.banner(self.logger, "Re-enabling metro availability")
        engine = PdFailoverEngine(self.logger, ctx.local, ctx.remote, self.poller)
        self.results = engine.re_enable_local(ctx.pds)

    def failover(self, ctx: RunContext) -> None:
        assert ctx.topology is not None and ctx.remote_site is not None
        coordinator = EvacuationCoordinator(
            self.logger,
            ctx.vcenter,
            ctx.topology,
            ctx.remote_site.facts.name,
            self.poller,
            self.decider,
        )
        coordinator.evacuate(ctx.containers)

        Log.banner(self.logger, "Protection domain failover")
        engine = PdFailoverEngine(self.logger, ctx.local, ctx.remote, self.poller)
        self.results = engine.failover_all(ctx.pds)

    def maintenance(self, ctx: RunContext) -> None:
        assert ctx.topology is not None and ctx.local_facts is not None and self.options.action
        seq = MaintenanceSequencer(
            self.logger,
            ctx.vcenter,
            ctx.topology,
            ctx.local_facts,
            self.poller,
            self.ssh_factory,
            action=self.options.action,
            shutdown_uvms=self.options.shutdown_uvms,
            timer_s=self.options.timer_s,
            console=self.console,
        )
        seq.run()

    def cleanup(self, ctx: RunContext) -> None:
        if ctx.vcenter is not None:
            ctx.vcenter.disconnect()
        for client in (ctx.local, ctx.remote):
            if client is not None:
                try:
                    client.close()
                except Exception as e:
                    self.logger.debug("Closing %r failed: %s", client, e)

    # ----------------------------
    # driver
    # ----------------------------

    def run(self) -> RunContext:
        opts = self.options
        ctx = RunContext(logger=self.logger, options=opts, poller=self.poller)
        phase = "preflight"
        try:
            self.prepare(ctx)
            if opts.re_enable_only:
                phase = "re-enable"
                self.re_enable(ctx)
            else:
                if opts.skip_failover:
                    Log.warn(self.logger, "Skipping evacuation and protection domain failover")
                else:
                    phase = "failover"
                    self.failover(ctx)
                if opts.action:
                    phase = opts.action
                    self.maintenance(ctx)
        except MaFailoverError as e:
            Log.fail(self.logger, f"Stopped during {phase} after {U.human_duration(ctx.elapsed())}", error=type(e).__name__)
            raise
        finally:
            self.cleanup(ctx)

        Log.ok(self.logger, f"Done in {U.human_duration(ctx.elapsed())}")
        return ctx
