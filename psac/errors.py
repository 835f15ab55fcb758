# -*- coding: utf-8 -*-
"""Exception types raised by the communication layer."""

# Import typing primitives.
from typing import Optional


class PsacError(RuntimeError):
    """Base error, tagged with the rank that raised it."""

    def __init__(self, msg: str, rank: int = -1) -> None:
        self.rank = rank
        super().__init__(f"[rank {rank}] {msg}")


class CollectiveError(PsacError):
    """A transport call failed; the whole group is unusable afterwards.

    Attributes
    ----------
    operation : str
        Name of the transport call that failed (e.g. 'Alltoallv').
    host : str
        Host name of the failing rank.
    original : Exception or None
        The exception raised by the transport.
    """

    def __init__(self, operation: str, rank: int = -1, host: str = "",
                 original: Optional[Exception] = None) -> None:
        self.operation = operation
        self.host = host
        self.original = original
        super().__init__(f"collective '{operation}' failed on host '{host}': {original}", rank=rank)


class RoleError(PsacError):
    """A root-only entry point ran on a member, or the reverse."""


class CountOverflowError(PsacError):
    """A single transfer count does not fit the transport's 32-bit count."""
