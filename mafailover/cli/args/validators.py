# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/cli/args/validators.py
from __future__ import annotations

import argparse
from typing import Any, Dict, List

from ...core.exceptions import Fatal
from ...core.utils import U
from ...failover.context import PD_ALL
from .helpers import _merged_get, _merged_secret, _require


def _usage(msg: str) -> Fatal:
    return Fatal(code=2, msg=msg)


def _pd_list(args: argparse.Namespace, conf: Dict[str, Any]) -> List[str]:
    return U.split_csv(_merged_get(args, conf, "pd"))


def _validate_scope(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    if not _require(_merged_get(args, conf, "cluster")):
        raise _usage("missing required `cluster:` (YAML) or CLI --cluster")

    pds = _pd_list(args, conf)
    if not pds:
        raise _usage("missing required `pd:` (YAML) or CLI --pd (name, comma list or 'all')")

    wants_all = any(p.lower() == PD_ALL for p in pds)
    if wants_all and len(pds) > 1:
        raise _usage("--pd 'all' cannot be combined with protection domain names")

    action = _merged_get(args, conf, "action")
    if _require(action) and not wants_all:
        raise _usage("--action requires --pd all (acting on hosts after a partial failover would strand VMs)")


def _validate_modes(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    re_enable_only = bool(_merged_get(args, conf, "re_enable_only"))
    skip_failover = bool(_merged_get(args, conf, "skip_failover"))
    action = _merged_get(args, conf, "action")

    if re_enable_only and skip_failover:
        raise _usage("--re-enable-only and --skip-failover are mutually exclusive")
    if re_enable_only and _require(action):
        raise _usage("--re-enable-only cannot be combined with --action")
    if bool(_merged_get(args, conf, "shutdown_uvms")) and not _require(action):
        raise _usage("--shutdown-uvms only applies together with --action")


def _validate_numbers(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    timer = _merged_get(args, conf, "timer")
    if timer is not None and int(timer) < 0:
        raise _usage(f"--timer must be >= 0 (got {timer})")

    interval = _merged_get(args, conf, "poll_interval")
    if interval is not None and float(interval) < 0:
        raise _usage(f"--poll-interval must be >= 0 (got {interval})")

    timeout = _merged_get(args, conf, "poll_timeout")
    if timeout is not None and float(timeout) <= 0:
        raise _usage(f"--poll-timeout must be > 0 (got {timeout})")


def _validate_credentials(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    if not _require(_merged_get(args, conf, "prism_user")):
        raise _usage("missing required `prism_user:` (YAML) or CLI --prism-user")
    if not _require(_merged_secret(args, conf, "prism_password", "prism_password_env")):
        raise _usage("missing Prism password. Set `prism_password:` or `prism_password_env:` (or CLI equivalents).")
    if not _require(_merged_get(args, conf, "vcenter_user")):
        raise _usage("missing required `vcenter_user:` (YAML) or CLI --vcenter-user")
    if not _require(_merged_secret(args, conf, "vcenter_password", "vcenter_password_env")):
        raise _usage("missing vCenter password. Set `vcenter_password:` or `vcenter_password_env:` (or CLI equivalents).")


def validate_args(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    """
    Pure input validation; runs before any network call.
    """
    _validate_scope(args, conf)
    _validate_modes(args, conf)
    _validate_numbers(args, conf)
    _validate_credentials(args, conf)
