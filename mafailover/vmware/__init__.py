# mafailover/vmware/__init__.py
from .client import ClusterSettings, VCenterClient, VmView

__all__ = ["ClusterSettings", "VCenterClient", "VmView"]
