# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/cli/args/groups.py
from __future__ import annotations

import argparse

from ...core.polling import DEFAULT_POLL_INTERVAL_S
from ...failover.context import ACTIONS, DEFAULT_UVM_TIMER_S


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Global config/logging (two-phase parse relies on these)
    # ------------------------------------------------------------------
    from ... import __version__

    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML/JSON config file (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged normalized config and exit.")
    p.add_argument("--dump-args", action="store_true", help="Print final parsed args and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv (trace)")
    p.add_argument("-q", "--quiet", action="count", default=0, help="Less output: -q warnings, -qq errors")
    p.add_argument("--log-file", dest="log_file", default=None, help="Write logs to file.")
    p.add_argument("--json-logs", dest="json_logs", action="store_true", help="Emit NDJSON log lines on stderr.")


def _add_failover_scope(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # What to fail over
    # ------------------------------------------------------------------
    g = p.add_argument_group("Failover scope")
    g.add_argument(
        "--cluster", "-cluster",
        dest="cluster",
        default=None,
        help="Prism Element address of the cluster the protection domains are failed over FROM.",
    )
    g.add_argument(
        "--pd", "-pd",
        dest="pd",
        default=None,
        help="Protection domain name, comma separated list, or 'all'.",
    )
    g.add_argument(
        "--action", "-action",
        dest="action",
        default=None,
        choices=list(ACTIONS),
        help="After failover put the local hosts into maintenance, or power them off. Requires --pd all.",
    )


def _add_resume_flags(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Resume a partial run
    # ------------------------------------------------------------------
    g = p.add_argument_group("Resume")
    g.add_argument(
        "--skip-failover", "-skipfailover",
        dest="skip_failover",
        action="store_true",
        help="Skip evacuation and protection domain failover (domains already Enabled on the peer).",
    )
    g.add_argument(
        "--re-enable-only", "-reEnableOnly",
        dest="re_enable_only",
        action="store_true",
        help="Only re-enable metro availability of Active+Disabled domains on --cluster.",
    )


def _add_vm_handling(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Guest VM handling
    # ------------------------------------------------------------------
    g = p.add_argument_group("Guest VMs")
    g.add_argument(
        "--reset-overrides", "-resetOverrides",
        dest="reset_overrides",
        action="store_true",
        help="Reset per-VM DRS automation overrides without asking.",
    )
    g.add_argument(
        "--shutdown-uvms", "-shutdownUvms",
        dest="shutdown_uvms",
        action="store_true",
        help="With --action: shut down guest VMs still running on local hosts (forced after --timer + 60s).",
    )
    g.add_argument(
        "--timer", "-timer",
        dest="timer",
        type=int,
        default=DEFAULT_UVM_TIMER_S,
        help="Seconds to wait for guest shutdown before forcing power off.",
    )
    g.add_argument("-y", "--yes", dest="yes", action="store_true", help="Never prompt (DRS overrides are kept unless --reset-overrides).")


def _add_credentials(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Credentials (secrets directly or via environment variable names)
    # ------------------------------------------------------------------
    g = p.add_argument_group("Credentials")
    g.add_argument("--prism-user", dest="prism_user", default="admin", help="Prism Element user (both clusters).")
    g.add_argument("--prism-password", dest="prism_password", default=None, help="Prism password (prefer --prism-password-env).")
    g.add_argument(
        "--prism-password-env",
        dest="prism_password_env",
        default="MA_PRISM_PASSWORD",
        help="Environment variable holding the Prism password.",
    )
    g.add_argument("--vcenter", dest="vcenter", default=None, help="vCenter address (must match the registered management server).")
    g.add_argument("--vcenter-user", dest="vcenter_user", default=None, help="vCenter user.")
    g.add_argument("--vcenter-password", dest="vcenter_password", default=None, help="vCenter password (prefer --vcenter-password-env).")
    g.add_argument(
        "--vcenter-password-env",
        dest="vcenter_password_env",
        default="MA_VCENTER_PASSWORD",
        help="Environment variable holding the vCenter password.",
    )
    g.add_argument("--cvm-user", dest="cvm_user", default="nutanix", help="Controller VM SSH user.")
    g.add_argument("--cvm-identity", dest="cvm_identity", default=None, help="SSH private key for the controller VM.")
    g.add_argument(
        "--cvm-password-env",
        dest="cvm_password_env",
        default=None,
        help="Environment variable holding the controller VM password (uses sshpass).",
    )


def _add_polling(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Poll loops
    # ------------------------------------------------------------------
    g = p.add_argument_group("Polling")
    g.add_argument(
        "--poll-interval",
        dest="poll_interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL_S,
        help="Seconds between two polls of a converging state.",
    )
    g.add_argument(
        "--poll-timeout",
        dest="poll_timeout",
        type=float,
        default=None,
        help="Give up a single wait after this many seconds (default: wait forever).",
    )
