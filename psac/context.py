# -*- coding: utf-8 -*-
"""Process group context.

This module provides:
- MPI import (optional, serial fallback)
- the GroupContext passed to every collective
- the Role of a process in root-based operations
- transport call wrapping (MPI faults -> CollectiveError)
"""

# Import logging for failure reports.
import logging

# Import socket for the serial host name.
import socket

# Import dataclass for the context object.
from dataclasses import dataclass

# Import Enum for process roles.
from enum import Enum

# Import typing primitives.
from typing import Any, Callable, Optional

# Import local error types.
from .errors import CollectiveError, RoleError


# Try importing mpi4py; allow serial fallback.
try:
    from mpi4py import MPI  # type: ignore
    HAVE_MPI = True
except Exception:
    MPI = None  # type: ignore
    HAVE_MPI = False

# Exceptions the transport raises once ERRORS_RETURN is installed.
_MPI_EXCEPTIONS = (MPI.Exception,) if HAVE_MPI else ()

# Reduction operator passed to Allreduce/Exscan.
SUM = MPI.SUM if HAVE_MPI else None

# Rank that owns root-based operations.
ROOT = 0

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupContext:
    """Handle on the process group, injected into every operation.

    Attributes
    ----------
    comm : communicator or None
        mpi4py communicator (or any object with the same API).
        None means a serial group of one process.
    rank : int
        Own rank in [0, size).
    size : int
        Number of processes in the group.
    host : str
        Name of the host this process runs on.
    """
    comm: Any
    rank: int
    size: int
    host: str

    @property
    def is_root(self) -> bool:
        return self.rank == ROOT

    @property
    def is_serial(self) -> bool:
        return self.comm is None


class Role(Enum):
    """Side of a root-based operation executed by this process."""
    ROOT = "root"
    MEMBER = "member"

    @classmethod
    def of(cls, ctx: GroupContext) -> "Role":
        """Return the role matching the context's rank."""
        return cls.ROOT if ctx.is_root else cls.MEMBER


def host_name() -> str:
    """Return the processor name of this process."""
    if HAVE_MPI:
        return MPI.Get_processor_name()
    return socket.gethostname()


def serial_context() -> GroupContext:
    """Return a single-process context that needs no transport."""
    return GroupContext(comm=None, rank=0, size=1, host=socket.gethostname())


def get_context(comm: Any = None, host: Optional[str] = None) -> GroupContext:
    """Build the group context for `comm` (MPI.COMM_WORLD by default).

    Without mpi4py and without an explicit communicator, a serial
    context is returned. On a real MPI communicator the error handler is
    switched to ERRORS_RETURN so transport faults surface as Python
    exceptions carrying a stack trace rather than aborting the job.
    """
    # Serial fallback when nothing can carry messages.
    if comm is None and not HAVE_MPI:
        return serial_context()
    # Default to the world communicator.
    if comm is None:
        comm = MPI.COMM_WORLD
    # Raise instead of abort on transport faults.
    if HAVE_MPI and isinstance(comm, MPI.Comm):
        comm.Set_errhandler(MPI.ERRORS_RETURN)
    return GroupContext(
        comm=comm,
        rank=comm.Get_rank(),
        size=comm.Get_size(),
        host=host if host is not None else host_name(),
    )


def require_role(ctx: GroupContext, role: Role, operation: str) -> None:
    """Raise RoleError if `role` is not the side this rank executes."""
    expected = Role.of(ctx)
    if role is not expected:
        raise RoleError(
            f"'{operation}' called with role {role.value} but rank {ctx.rank} is {expected.value}",
            rank=ctx.rank,
        )


def collective_call(ctx: GroupContext, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run one transport call, converting MPI faults into CollectiveError.

    There is no retry: once a collective failed the other ranks are
    blocked in it and the group cannot make progress.
    """
    try:
        return fn(*args, **kwargs)
    except _MPI_EXCEPTIONS as exc:
        logger.error("collective '%s' failed on rank %d (%s): %s", operation, ctx.rank, ctx.host, exc)
        raise CollectiveError(operation, rank=ctx.rank, host=ctx.host, original=exc) from exc
