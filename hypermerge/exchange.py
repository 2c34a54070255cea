from .errors import CommunicationError, ProtocolViolation


def exchange_counts(transport, count, timeout=None):
    """
    Share every rank's local count with every rank.

    Returns an int64 array indexed by rank. Fails with CommunicationError if
    any rank never contributes.
    """
    counts = transport.allgather(int(count), timeout=timeout)
    if len(counts) != transport.size:
        raise CommunicationError(
            f"count exchange returned {len(counts)} counts for {transport.size} ranks",
            rank=transport.rank,
        )
    if counts[transport.rank] != count:
        raise ProtocolViolation(
            f"count exchange reports {counts[transport.rank]} items here, have {count}",
            rank=transport.rank,
        )
    return counts
