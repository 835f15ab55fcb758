# -*- coding: utf-8 -*-
"""Size negotiation shared by the variable-length collectives.

Every variable-length exchange first moves one count per rank with a
fixed-size collective, so receivers can size their buffers and compute
displacements before the payload moves.
"""

# Import logging for count tracing.
import logging

# Import typing primitives.
from typing import Optional

# Import numpy for count arrays.
import numpy as np

# Import local context helpers and errors.
from .context import ROOT, GroupContext, collective_call
from .errors import CountOverflowError

# Largest count the transport accepts in a single call (signed 32-bit).
MAX_COUNT = 2**31 - 1

logger = logging.getLogger(__name__)


def check_count_limit(ctx: GroupContext, counts, what: str) -> None:
    """Raise CountOverflowError if any element count (or their total) exceeds MAX_COUNT."""
    counts = np.asarray(counts, dtype=np.int64)
    if counts.size and (counts.max() > MAX_COUNT or counts.sum() > MAX_COUNT):
        raise CountOverflowError(
            f"{what}: transfer of {int(counts.sum())} elements exceeds the {MAX_COUNT} count limit",
            rank=ctx.rank,
        )


def gather_sizes(ctx: GroupContext, local_size: int) -> Optional[np.ndarray]:
    """Gather one size per rank to root; returns None on other ranks."""
    # Serial group: the only size is our own.
    if ctx.is_serial:
        return np.array([local_size], dtype=np.int64)
    sendbuf = np.array([local_size], dtype=np.int64)
    # Allocate on root only.
    recvbuf = np.empty(ctx.size, dtype=np.int64) if ctx.is_root else None
    collective_call(ctx, "Gather", ctx.comm.Gather, sendbuf, recvbuf, root=ROOT)
    if ctx.is_root:
        logger.debug("gathered sizes %s", recvbuf.tolist())
    return recvbuf


def scatter_sizes(ctx: GroupContext, sizes: Optional[np.ndarray]) -> int:
    """Scatter one size per rank from root; `sizes` is ignored on other ranks."""
    if ctx.is_serial:
        return int(sizes[0])
    sendbuf = np.ascontiguousarray(sizes, dtype=np.int64) if ctx.is_root else None
    recvbuf = np.empty(1, dtype=np.int64)
    collective_call(ctx, "Scatter", ctx.comm.Scatter, sendbuf, recvbuf, root=ROOT)
    return int(recvbuf[0])


def exchange_counts(ctx: GroupContext, send_counts: np.ndarray) -> np.ndarray:
    """Exchange per-destination send counts to obtain per-source receive counts."""
    send_counts = np.ascontiguousarray(send_counts, dtype=np.int64)
    if ctx.is_serial:
        return send_counts.copy()
    # Entry s of the result is what rank s sends here.
    recv_counts = np.zeros(ctx.size, dtype=np.int64)
    collective_call(ctx, "Alltoall", ctx.comm.Alltoall, send_counts, recv_counts)
    logger.debug("send counts %s, recv counts %s", send_counts.tolist(), recv_counts.tolist())
    return recv_counts


def agree_layout(ctx: GroupContext, local: np.ndarray, what: str) -> np.ndarray:
    """Make every rank's segment share one element dtype and trailing shape.

    Non-empty segments decide the layout and must all agree; if every
    segment is empty, root's layout wins. Empty segments with another
    layout (e.g. ``np.asarray([])``, which is float64) are replaced by an
    empty array of the agreed layout. Every rank sees the same gathered
    layouts, so a mismatch raises TypeError on all ranks alike.
    """
    layout = (local.dtype, tuple(local.shape[1:]))
    if ctx.is_serial:
        return local
    layouts = collective_call(ctx, "allgather", ctx.comm.allgather, (layout, local.shape[0] > 0))
    typed = [lay for lay, nonempty in layouts if nonempty]
    agreed = typed[0] if typed else layouts[ROOT][0]
    if any(lay != agreed for lay in typed):
        found = sorted({f"{dt}{tail}" for dt, tail in typed})
        raise TypeError(f"{what}: ranks hold different element layouts {found}")
    if layout == agreed:
        return local
    # Only empty segments get here.
    logger.debug("%s: empty %s segment recast to %s%s", what, local.dtype, agreed[0], agreed[1])
    return np.empty((0,) + agreed[1], dtype=agreed[0])
