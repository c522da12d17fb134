# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/cli/args/helpers.py
from __future__ import annotations

import argparse
import os
from typing import Any, Dict, Optional

from ...failover.context import Credentials


def _require(v: Any) -> bool:
    """True if v is meaningfully present (treats empty/whitespace-only strings as missing)."""
    if v is None:
        return False
    if isinstance(v, str):
        return v.strip() != ""
    return True


def _merged_get(args: argparse.Namespace, conf: Dict[str, Any], key: str) -> Any:
    """
    Prefer CLI override if present (non-empty), else config.
    """
    v = getattr(args, key, None)
    if _require(v):
        return v
    return conf.get(key)


def _merged_secret(args: argparse.Namespace, conf: Dict[str, Any], value_key: str, env_key: str) -> Optional[str]:
    """
    Resolve a secret from (CLI value) or (CLI env var name) or (YAML value) or (YAML env var name).
    Example: (prism_password, prism_password_env)
    """
    direct = _merged_get(args, conf, value_key)
    if _require(direct):
        return str(direct)

    envname = _merged_get(args, conf, env_key)
    if _require(envname):
        return os.environ.get(str(envname), None)

    return None


def _credentials(args: argparse.Namespace, conf: Dict[str, Any]) -> Credentials:
    return Credentials(
        prism_user=str(_merged_get(args, conf, "prism_user") or ""),
        prism_password=_merged_secret(args, conf, "prism_password", "prism_password_env") or "",
        vcenter_user=str(_merged_get(args, conf, "vcenter_user") or ""),
        vcenter_password=_merged_secret(args, conf, "vcenter_password", "vcenter_password_env") or "",
        cvm_user=str(_merged_get(args, conf, "cvm_user") or "nutanix"),
        cvm_password_env=_merged_get(args, conf, "cvm_password_env") or None,
        cvm_identity=_merged_get(args, conf, "cvm_identity") or None,
    )
