"""
Butterfly merge driver.

Each rank walks its hypercube schedule: while its partner sits above it,
it receives the partner's list and merges it in; the first time its
partner sits below it, it sends everything it has and retires. After
ceil(log2 P) rounds only rank 0 is left, holding the merged list.
"""

import enum
from dataclasses import dataclass

import numpy as np

from .config import MergeConfig
from .errors import CommunicationError, ConfigurationError, ProtocolViolation
from .exchange import exchange_counts
from .log import format_list, get_logger
from .merge import is_sorted, merge_into
from .plan import Action, compute_merge_plan, hypercube_schedule


class WorkerState(enum.Enum):
    ACTIVE = "active"
    RETIRED = "retired"


@dataclass
class MergeResult:
    rank: int
    final_list: np.ndarray
    count: int
    rounds: int
    sends: int
    state: WorkerState

    @property
    def is_root(self):
        return self.state is WorkerState.ACTIVE


class ButterflyMerger:
    def __init__(self, transport, config=None):
        self.transport = transport
        self.config = MergeConfig() if config is None else config
        self.rank = transport.rank
        self.size = transport.size
        self.log = get_logger(self.rank)
        self.state = WorkerState.ACTIVE

        if self.size <= 0:
            raise ConfigurationError(f"group size must be positive, got {self.size}")
        if not 0 <= self.rank < self.size:
            raise ConfigurationError(f"rank outside [0, {self.size})", rank=self.rank)

    def _prepare(self, local_list):
        items = np.asarray(local_list)
        if items.ndim != 1:
            raise ConfigurationError(f"local list must be 1-D, got shape {items.shape}", rank=self.rank)
        # An empty list has no values to lose, whatever dtype numpy picked for it
        if items.size and not np.can_cast(items.dtype, self.config.dtype, casting="same_kind"):
            raise ConfigurationError(
                f"cannot merge {items.dtype} items as {np.dtype(self.config.dtype)}", rank=self.rank
            )
        if self.config.check_sorted and not is_sorted(items):
            raise ConfigurationError("local list is not sorted ascending", rank=self.rank)
        return items.astype(self.config.dtype, copy=False)

    def merge(self, local_list):
        if self.state is not WorkerState.ACTIVE:
            raise ConfigurationError("merger already retired", rank=self.rank)

        cfg = self.config
        local = self._prepare(local_list)

        counts = exchange_counts(self.transport, len(local), timeout=cfg.timeout)
        plan = compute_merge_plan(counts)
        if cfg.verbose:
            self.log.debug(format_list("list sizes", counts))
            self.log.debug(format_list("recv counts", plan.recv_sizes))

        # Both working buffers and the receive buffer are sized once, here.
        capacity = int(plan.final_counts[self.rank])
        current = np.empty(capacity, dtype=cfg.dtype)
        scratch = np.empty(capacity, dtype=cfg.dtype)
        received = np.empty(int(plan.recv_sizes[self.rank]), dtype=cfg.dtype)
        current[: len(local)] = local
        size = len(local)

        rounds = 0
        sends = 0
        for step in hypercube_schedule(self.rank, self.size, plan):
            rounds += 1
            if step.action is Action.SKIP:
                self.log.debug(f"round {step.round}: partner {step.partner} out of range, skipping")
                continue

            if step.action is Action.RECEIVE:
                if self._receive_and_merge(step, current, scratch, received, size):
                    size += step.count
                    current, scratch = scratch, current
                if cfg.verbose:
                    self.log.debug(format_list("after merge", current[:size]))
                continue

            # Action.SEND
            if size != step.count:
                raise ProtocolViolation(
                    f"holding {size} items, plan expects {step.count}",
                    rank=self.rank, round=step.round, partner=step.partner,
                )
            self.log.debug(f"round {step.round}: sending {size} items to {step.partner}")
            try:
                self.transport.send(current[:size], step.partner, cfg.tag)
            except CommunicationError as e:
                self.log.error(f"round {step.round}: send to {step.partner} failed")
                raise CommunicationError(
                    f"send failed: {e.reason}", rank=self.rank, round=step.round, partner=step.partner
                ) from e
            sends += 1
            self.state = WorkerState.RETIRED

        if self.state is WorkerState.RETIRED:
            return MergeResult(self.rank, np.empty(0, dtype=cfg.dtype), 0, rounds, sends, self.state)

        if size != plan.total:
            raise ProtocolViolation(f"root holds {size} items, plan expects {plan.total}", rank=self.rank)
        self.log.debug(f"merged {size} items in {rounds} rounds")
        return MergeResult(self.rank, current[:size], size, rounds, sends, self.state)

    def _receive_and_merge(self, step, current, scratch, received, size):
        """
        Receive the partner's list and merge it with ours into `scratch`.

        Returns False when the partner's list was empty and nothing was merged.
        """
        tag = self.config.tag
        try:
            incoming = self.transport.probe(step.partner, tag, self.config.dtype, timeout=self.config.timeout)
        except CommunicationError as e:
            self.log.error(f"round {step.round}: receive from {step.partner} failed")
            raise CommunicationError(
                f"receive failed: {e.reason}", rank=self.rank, round=step.round, partner=step.partner
            ) from e
        if incoming != step.count:
            self.log.error(f"round {step.round}: {step.partner} sent {incoming} items, planned {step.count}")
            raise ProtocolViolation(
                f"received {incoming} items, plan predicted {step.count}",
                rank=self.rank, round=step.round, partner=step.partner,
            )

        buf = received[: step.count]
        self.transport.recv(buf, step.partner, tag)
        self.log.debug(f"round {step.round}: received {step.count} items from {step.partner}")
        if step.count == 0:
            return False
        merge_into(current[:size], buf, scratch)
        return True


def merge_lists(local_list, transport=None, config=None):
    """Merge every rank's sorted list onto rank 0. Call on all ranks."""
    if transport is None:
        from .transport import MPITransport

        transport = MPITransport()
    return ButterflyMerger(transport, config).merge(local_list)
