"""Errors raised by the butterfly merge."""


class MergeError(Exception):
    """Base error. Carries the rank, round and partner involved when known."""

    def __init__(self, message, rank=None, round=None, partner=None):
        self.rank = rank
        self.round = round
        self.partner = partner
        self.reason = message
        where = []
        if rank is not None:
            where.append(f"rank {rank}")
        if round is not None:
            where.append(f"round {round}")
        if partner is not None:
            where.append(f"partner {partner}")
        if where:
            message = f"{message} ({', '.join(where)})"
        super().__init__(message)


class ConfigurationError(MergeError):
    """Bad group size, rank, config value or unsorted local list."""


class CommunicationError(MergeError):
    """A send or receive failed or never completed."""


class ProtocolViolation(MergeError):
    """A message did not match what the merge plan predicted."""
