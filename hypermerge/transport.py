"""
Point-to-point transports the merge runs over.

MPITransport wraps an mpi4py communicator and moves numpy buffers with the
uppercase (buffer) API. LocalGroup wires up in-process transports so ranks
can run as threads, each with its own mailboxes.
"""

import queue
import threading
import time

import numpy as np

from .errors import CommunicationError, ProtocolViolation

# Reserved for the count allgather on local transports
COUNT_TAG = -1

POLL_INTERVAL = 0.001


class Transport:
    rank = 0
    size = 1

    def allgather(self, count, timeout=None):
        """Return every rank's count, indexed by rank."""
        raise NotImplementedError

    def send(self, data, dest, tag):
        raise NotImplementedError

    def probe(self, source, tag, dtype, timeout=None):
        """Block until a message from `source` is pending and return its item count."""
        raise NotImplementedError

    def recv(self, buf, source, tag):
        """Receive the pending message from `source` into `buf`, which must fit it exactly."""
        raise NotImplementedError


class MPITransport(Transport):
    def __init__(self, comm=None):
        from mpi4py import MPI

        self._MPI = MPI
        self.comm = MPI.COMM_WORLD if comm is None else comm
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()

    def _mpi_type(self, dtype):
        from mpi4py.util.dtlib import from_numpy_dtype

        return from_numpy_dtype(np.dtype(dtype))

    def allgather(self, count, timeout=None):
        # MPI collectives cannot be timed out from here; a missing rank hangs
        # until the launcher kills the job.
        send_buf = np.array([count], dtype=np.int64)
        recv_buf = np.empty(self.size, dtype=np.int64)
        try:
            self.comm.Allgather([send_buf, self._MPI.INT64_T], [recv_buf, self._MPI.INT64_T])
        except self._MPI.Exception as e:
            raise CommunicationError(f"count allgather failed: {e}", rank=self.rank) from e
        return recv_buf

    def send(self, data, dest, tag):
        data = np.ascontiguousarray(data)
        try:
            self.comm.Send([data, self._mpi_type(data.dtype)], dest=dest, tag=tag)
        except self._MPI.Exception as e:
            raise CommunicationError(f"send failed: {e}", rank=self.rank, partner=dest) from e

    def probe(self, source, tag, dtype, timeout=None):
        status = self._MPI.Status()
        try:
            if timeout is None:
                self.comm.Probe(source=source, tag=tag, status=status)
            else:
                deadline = time.monotonic() + timeout
                while not self.comm.Iprobe(source=source, tag=tag, status=status):
                    if time.monotonic() >= deadline:
                        raise CommunicationError(
                            f"no message after {timeout}s", rank=self.rank, partner=source
                        )
                    time.sleep(POLL_INTERVAL)
            return status.Get_count(self._mpi_type(dtype))
        except self._MPI.Exception as e:
            raise CommunicationError(f"probe failed: {e}", rank=self.rank, partner=source) from e

    def recv(self, buf, source, tag):
        try:
            self.comm.Recv([buf, self._mpi_type(buf.dtype)], source=source, tag=tag)
        except self._MPI.Exception as e:
            raise CommunicationError(f"receive failed: {e}", rank=self.rank, partner=source) from e


class LocalGroup:
    """A fixed group of in-process transports connected by queues."""

    def __init__(self, size):
        if size <= 0:
            raise ValueError(f"group size must be positive, got {size}")
        self.size = size
        self._mailboxes = {}
        self._lock = threading.Lock()

    def mailbox(self, source, dest, tag):
        key = (source, dest, tag)
        with self._lock:
            if key not in self._mailboxes:
                self._mailboxes[key] = queue.Queue()
            return self._mailboxes[key]

    def transport(self, rank):
        if not 0 <= rank < self.size:
            raise ValueError(f"rank must be in [0, {self.size}), got {rank}")
        return LocalTransport(self, rank)

    def transports(self):
        return [self.transport(rank) for rank in range(self.size)]


class LocalTransport(Transport):
    def __init__(self, group, rank):
        self.group = group
        self.rank = rank
        self.size = group.size
        self._pending = {}

    def _get(self, source, tag, timeout):
        try:
            return self.group.mailbox(source, self.rank, tag).get(timeout=timeout)
        except queue.Empty:
            raise CommunicationError(
                f"no message after {timeout}s", rank=self.rank, partner=source
            ) from None

    def allgather(self, count, timeout=None):
        for dest in range(self.size):
            if dest != self.rank:
                self.group.mailbox(self.rank, dest, COUNT_TAG).put(int(count))
        counts = np.empty(self.size, dtype=np.int64)
        for source in range(self.size):
            counts[source] = count if source == self.rank else self._get(source, COUNT_TAG, timeout)
        return counts

    def send(self, data, dest, tag):
        if not 0 <= dest < self.size:
            raise CommunicationError("send to a rank outside the group", rank=self.rank, partner=dest)
        # Value semantics: the receiver never sees the sender's buffer
        self.group.mailbox(self.rank, dest, tag).put(np.array(data, copy=True))

    def probe(self, source, tag, dtype, timeout=None):
        key = (source, tag)
        if key not in self._pending:
            self._pending[key] = self._get(source, tag, timeout)
        return len(self._pending[key])

    def recv(self, buf, source, tag):
        key = (source, tag)
        message = self._pending.pop(key, None)
        if message is None:
            message = self._get(source, tag, None)
        if len(message) != len(buf):
            raise ProtocolViolation(
                f"received {len(message)} items into a buffer of {len(buf)}",
                rank=self.rank,
                partner=source,
            )
        buf[:] = message
