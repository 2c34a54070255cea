"""
Merge planning for the hypercube reduction.

The plan replays the combine tree the driver will walk, without sending
anything, so every rank knows up front how large each list it receives
will be and how large its own list will grow.
"""

import enum
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional

import numpy as np

from .errors import ConfigurationError


class Action(enum.Enum):
    RECEIVE = "receive"
    SKIP = "skip"
    SEND = "send"


class RoundStep(NamedTuple):
    round: int
    bitmask: int
    partner: int
    action: Action
    # Items moved in this step; None when no plan was given
    count: Optional[int] = None


@dataclass(frozen=True)
class MergePlan:
    counts: np.ndarray
    final_counts: np.ndarray
    recv_sizes: np.ndarray

    @property
    def size(self):
        return len(self.counts)

    @property
    def total(self):
        return int(self.counts.sum())


def num_rounds(size):
    """ceil(log2(size)), the rounds the root goes through."""
    if size <= 0:
        raise ConfigurationError(f"group size must be positive, got {size}")
    return (size - 1).bit_length()


def compute_merge_plan(counts):
    counts = np.asarray(counts, dtype=np.int64)
    if counts.ndim != 1 or counts.size == 0:
        raise ConfigurationError(f"need one count per rank, got shape {counts.shape}")
    if np.any(counts < 0):
        raise ConfigurationError(f"counts must be non-negative, got {counts.tolist()}")

    p = counts.size
    totals = counts.copy()
    recv_sizes = np.zeros(p, dtype=np.int64)

    bitmask = 1
    while bitmask < p:
        for rank in range(0, p, 2 * bitmask):
            partner = rank ^ bitmask
            if partner < p:
                recv_sizes[rank] = max(recv_sizes[rank], totals[partner])
                totals[rank] += totals[partner]
        bitmask <<= 1

    return MergePlan(counts=counts, final_counts=totals, recv_sizes=recv_sizes)


def hypercube_schedule(rank, size, plan=None) -> Iterator[RoundStep]:
    """Yield the steps `rank` takes, ending with its send unless it is the root."""
    if size <= 0:
        raise ConfigurationError(f"group size must be positive, got {size}")
    if not 0 <= rank < size:
        raise ConfigurationError(f"rank must be in [0, {size}), got {rank}")

    bitmask = 1
    round = 0
    while bitmask < size:
        partner = rank ^ bitmask
        if rank < partner:
            if partner >= size:
                yield RoundStep(round, bitmask, partner, Action.SKIP, 0 if plan is not None else None)
            else:
                count = int(plan.final_counts[partner]) if plan is not None else None
                yield RoundStep(round, bitmask, partner, Action.RECEIVE, count)
        else:
            count = int(plan.final_counts[rank]) if plan is not None else None
            yield RoundStep(round, bitmask, partner, Action.SEND, count)
            return
        bitmask <<= 1
        round += 1
