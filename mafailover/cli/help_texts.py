# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/cli/help_texts.py
from __future__ import annotations

# Pure help text for the argparse epilog; keep it copy/paste runnable.

YAML_EXAMPLE = r"""# mafailover configuration example (YAML)
#
# Run:
#   mafailover --config site-a.yaml --pd all
#
# Merge multiple configs (later overrides earlier), CLI flags override both:
#   mafailover --config base.yaml --config site-a.yaml --pd PD-01,PD-02
#
cluster: 10.0.10.40            # Prism Element address of the cluster to fail over FROM
prism_user: admin
prism_password_env: MA_PRISM_PASSWORD
vcenter_user: administrator@vsphere.local
vcenter_password_env: MA_VCENTER_PASSWORD
cvm_user: nutanix
cvm_identity: ~/.ssh/id_rsa_nutanix
#
# Polling (defaults wait forever, like an operator would):
poll_interval: 15
# poll_timeout: 3600
"""

FEATURE_SUMMARY = r"""
  Phases:
    1. facts + preflight      RF >= 2, no upgrade, one shared vCenter, one remote site
    2. topology               storage hosts -> vCenter hosts, HA + DRS fully automated
    3. evacuation             DRS_Rule_MA_<container> -> DRS_HG_MA_<remote cluster>
    4. failover               promote (remote) -> disable (local, no Witness) -> re-enable (remote)
    5. --action               guest VMs, cluster stop, CVM shutdown, maintenance [, power off]

  Resume flags:
    --skip-failover           skip 3+4 (protection domains already Enabled on the peer)
    --re-enable-only          re-enable Active+Disabled domains on this cluster only

  Examples:
    mafailover --cluster 10.0.10.40 --pd all --action maintenance
    mafailover --cluster 10.0.10.40 --pd PD-01 --reset-overrides
    mafailover --cluster 10.0.10.40 --pd all --skip-failover --action shutdown --shutdown-uvms --timer 600
    mafailover --cluster 10.0.10.40 --pd all --re-enable-only
"""
