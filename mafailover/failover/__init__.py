# mafailover/failover/__init__.py
from .context import ClusterFacts, Credentials, DrsNaming, RemoteSiteInfo, RunContext, RunOptions, TopologyMap
from .evacuation import EvacuationCoordinator, EvacuationStatus
from .maintenance import MaintenanceSequencer
from .orchestrator import FailoverOrchestrator
from .pd_engine import PdFailoverEngine, PdState, PdStateMachine
from .topology import TopologyResolver

__all__ = [
    "ClusterFacts",
    "Credentials",
    "DrsNaming",
    "RemoteSiteInfo",
    "RunContext",
    "RunOptions",
    "TopologyMap",
    "EvacuationCoordinator",
    "EvacuationStatus",
    "MaintenanceSequencer",
    "FailoverOrchestrator",
    "PdFailoverEngine",
    "PdState",
    "PdStateMachine",
    "TopologyResolver",
]
