"""
Distributed merge of per-rank sorted lists by recursive doubling.

Usage:
    from hypermerge import merge_lists, MPITransport

    result = merge_lists(local_sorted, MPITransport(comm))
    if result.is_root:
        print(result.final_list)
"""

from .config import MergeConfig
from .driver import ButterflyMerger, MergeResult, WorkerState, merge_lists
from .errors import CommunicationError, ConfigurationError, MergeError, ProtocolViolation
from .exchange import exchange_counts
from .local import run_local
from .merge import is_sorted, merge_into, merge_slots, merge_sorted
from .plan import Action, MergePlan, RoundStep, compute_merge_plan, hypercube_schedule, num_rounds
from .transport import LocalGroup, LocalTransport, MPITransport, Transport

__version__ = "0.1.0"
__all__ = [
    "MergeConfig",
    "ButterflyMerger",
    "MergeResult",
    "WorkerState",
    "merge_lists",
    "run_local",
    "exchange_counts",
    "is_sorted",
    "merge_into",
    "merge_slots",
    "merge_sorted",
    "Action",
    "MergePlan",
    "RoundStep",
    "compute_merge_plan",
    "hypercube_schedule",
    "num_rounds",
    "Transport",
    "MPITransport",
    "LocalGroup",
    "LocalTransport",
    "MergeError",
    "ConfigurationError",
    "CommunicationError",
    "ProtocolViolation",
]
