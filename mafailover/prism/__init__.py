# mafailover/prism/__init__.py
from .client import PrismClient
from .models import ClusterInfo, HostInfo, ProtectionDomain, RemoteSite

__all__ = ["PrismClient", "ClusterInfo", "HostInfo", "ProtectionDomain", "RemoteSite"]
