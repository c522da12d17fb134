# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/__init__.py
"""
mafailover - Nutanix Metro Availability planned failover

Drives a planned failover of metro protection domains between two Nutanix
clusters sharing one vCenter: DRS evacuation of the local hosts, promote /
disable / re-enable of every protection domain, and optionally maintenance
mode or power-off of the evacuated hosts.

Usage as a library:

    from mafailover import FailoverOrchestrator, RunOptions, Credentials
    from mafailover.core.logger import Log

    logger = Log.setup(verbose=1)
    options = RunOptions(cluster="10.0.10.40", pds=("all",))
    creds = Credentials(prism_user="admin", prism_password="...",
                        vcenter_user="administrator@vsphere.local", vcenter_password="...")
    FailoverOrchestrator(logger, options, creds).run()
"""

__version__ = "0.1.0"

from .failover.context import Credentials, RunOptions
from .failover.orchestrator import FailoverOrchestrator

__all__ = ["__version__", "Credentials", "FailoverOrchestrator", "RunOptions"]
