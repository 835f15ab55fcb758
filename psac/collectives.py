# -*- coding: utf-8 -*-
"""Variable-length collectives over block-distributed sequences.

This module provides:
- gather of rank-ordered segments to root (Gatherv)
- block-decomposed scatter from root (Scatterv), for arrays and strings
- block-decomposed scatter from a forward-only stream on root (Send/Recv)
- bucketed all-to-all exchange keyed by a target function (Alltoallv)

Sequences are numpy arrays; one element is one entry along axis 0, so
trailing axes and structured dtypes are moved as a unit. Payloads are
byte views sent with a contiguous MPI datatype of one element, so every
count and displacement handed to the transport is in elements.
"""

# Import itertools for bounded reads from a stream.
import itertools

# Import logging for exchange tracing.
import logging

# Import contextmanager for datatype lifetimes.
from contextlib import contextmanager

# Import typing primitives.
from typing import Any, Callable, Iterable, Iterator, Optional, Tuple

# Import numpy for buffers, counts and displacements.
import numpy as np

# Import local helpers.
from .context import HAVE_MPI, MPI, ROOT, GroupContext, Role, collective_call, require_role
from .negotiation import agree_layout, check_count_limit, exchange_counts, gather_sizes, scatter_sizes
from .partition import block_partition, displacements
from .prefix_sum import excl_prefix_sum

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Element layout helpers
# ---------------------------------------------------------------------------

def _as_sequence(arr: Any, what: str) -> np.ndarray:
    """Validate that `arr` can be moved as raw bytes."""
    if arr is None:
        raise ValueError(f"{what}: root must provide a sequence")
    arr = np.asarray(arr)
    if arr.ndim == 0:
        raise ValueError(f"{what}: expected a sequence, got a scalar")
    if arr.dtype.hasobject:
        raise TypeError(f"{what}: object arrays have no fixed byte layout")
    if _element_bytes(arr.dtype, arr.shape[1:]) == 0:
        raise ValueError(f"{what}: elements of {arr.dtype}{arr.shape[1:]} occupy no bytes")
    return arr


def _element_bytes(dtype: np.dtype, tail: Tuple[int, ...]) -> int:
    """Number of bytes of one element (one entry along axis 0)."""
    return int(np.dtype(dtype).itemsize * int(np.prod(tail, dtype=np.int64)))


def _as_bytes(arr: np.ndarray) -> np.ndarray:
    """Flat uint8 view of a C-contiguous copy of `arr`."""
    return np.ascontiguousarray(arr).view(np.uint8).reshape(-1)


def _from_bytes(buf: np.ndarray, dtype: np.dtype, tail: Tuple[int, ...]) -> np.ndarray:
    """Reinterpret a flat uint8 buffer as elements of `dtype` and `tail` shape."""
    return buf.view(dtype).reshape((-1,) + tuple(tail))


@contextmanager
def _element_datatype(elem: int) -> Iterator[Tuple[Any, int]]:
    """Yield (datatype, scale) for moving elements of `elem` bytes.

    With MPI the datatype is a committed contiguous type of `elem` bytes
    and counts stay in elements (scale 1). Without MPI there is no
    datatype and counts are given in bytes (scale `elem`).
    """
    if not HAVE_MPI:
        yield None, elem
        return
    datatype = MPI.BYTE.Create_contiguous(elem).Commit()
    try:
        yield datatype, 1
    finally:
        datatype.Free()


# ---------------------------------------------------------------------------
# Gather / scatter
# ---------------------------------------------------------------------------

def gather(ctx: GroupContext, local) -> np.ndarray:
    """Gather every rank's segment to root, concatenated in rank order.

    Non-root ranks receive an empty array of the agreed dtype and trailing
    shape; that is the normal result, not an error.
    """
    local = _as_sequence(local, "gather")
    # Serial group: nothing to move.
    if ctx.is_serial:
        return local.copy()
    local = agree_layout(ctx, local, "gather")
    dtype, tail = local.dtype, local.shape[1:]
    # Report local length to root.
    sizes = gather_sizes(ctx, local.shape[0])
    with _element_datatype(_element_bytes(dtype, tail)) as (datatype, scale):
        sendspec = [_as_bytes(local), local.shape[0] * scale, datatype]
        if not ctx.is_root:
            collective_call(ctx, "Gatherv", ctx.comm.Gatherv, sendspec, None, root=ROOT)
            return np.empty((0,) + tail, dtype=dtype)
        check_count_limit(ctx, sizes, "gather")
        # Allocate the concatenation on root.
        recvbuf = np.empty(int(sizes.sum()) * _element_bytes(dtype, tail), dtype=np.uint8)
        recvspec = [recvbuf, sizes * scale, displacements(sizes) * scale, datatype]
        collective_call(ctx, "Gatherv", ctx.comm.Gatherv, sendspec, recvspec, root=ROOT)
    return _from_bytes(recvbuf, dtype, tail)


def scatter(ctx: GroupContext, global_seq=None) -> np.ndarray:
    """Block-decompose `global_seq` on root and scatter it to all ranks.

    Parameters
    ----------
    ctx : GroupContext
        Process group.
    global_seq : array-like or None
        The whole sequence on root; ignored (pass None) elsewhere.

    Returns
    -------
    np.ndarray
        This rank's block; rank r gets ``block_partition(n, p)[r]`` elements.
    """
    meta = None
    if ctx.is_root:
        global_seq = _as_sequence(global_seq, "scatter")
        meta = (global_seq.dtype, global_seq.shape[1:])
    # Serial group: the whole sequence is the only block.
    if ctx.is_serial:
        return global_seq.copy()
    # Everyone needs the element layout to size the receive buffer.
    dtype, tail = collective_call(ctx, "bcast", ctx.comm.bcast, meta, root=ROOT)
    elem = _element_bytes(dtype, tail)
    sizes = None
    if ctx.is_root:
        # Block decomposition of the whole sequence.
        sizes = block_partition(global_seq.shape[0], ctx.size)
        check_count_limit(ctx, sizes, "scatter")
    # Scatter the sizes to expect.
    local_size = scatter_sizes(ctx, sizes)
    recvbuf = np.empty(local_size * elem, dtype=np.uint8)
    with _element_datatype(elem) as (datatype, scale):
        sendspec = None
        if ctx.is_root:
            sendspec = [_as_bytes(global_seq), sizes * scale, displacements(sizes) * scale, datatype]
        # Scatter-v the actual data.
        collective_call(ctx, "Scatterv", ctx.comm.Scatterv, sendspec,
                        [recvbuf, local_size * scale, datatype], root=ROOT)
    return _from_bytes(recvbuf, dtype, tail)


def scatter_string(ctx: GroupContext, text: Optional[str] = None) -> str:
    """Block-scatter a string from root, one character per element."""
    chars = np.array(list(text), dtype="U1") if ctx.is_root and text is not None else None
    local = scatter(ctx, chars)
    return "".join(local.tolist())


def _read_block(stream, count: int, dtype: np.dtype) -> np.ndarray:
    """Read exactly `count` elements from a forward-only iterator."""
    # np.fromiter raises ValueError if the iterator runs dry early.
    return np.fromiter(itertools.islice(stream, count), dtype=dtype, count=count)


def scatter_stream(ctx: GroupContext, role: Role, stream: Optional[Iterable] = None,
                   n: int = 0, dtype=np.uint8) -> np.ndarray:
    """Block-scatter `n` elements read from a forward-only stream on root.

    Root never materialises the whole sequence: it keeps its own block,
    then reads each other rank's block in ascending rank order into a
    reusable send buffer and sends it tagged with the destination rank.
    Members receive one message tagged with their own rank.

    Parameters
    ----------
    ctx : GroupContext
        Process group.
    role : Role
        Side executed by this process; must match ``Role.of(ctx)``.
    stream : iterable
        Element source (root only).
    n : int
        Number of elements to distribute (root only).
    dtype : numpy dtype
        Element type (root only; broadcast to members).

    Raises
    ------
    RoleError
        If `role` does not match this rank.
    """
    require_role(ctx, role, "scatter_stream")
    meta = None
    if role is Role.ROOT:
        if stream is None:
            raise ValueError("scatter_stream: root must provide a stream")
        stream = iter(stream)
        meta = np.dtype(dtype)
    if ctx.is_serial:
        return _read_block(stream, n, meta)
    dtype = collective_call(ctx, "bcast", ctx.comm.bcast, meta, root=ROOT)
    if role is Role.MEMBER:
        # Receive my new local data size, then the data itself.
        local_size = scatter_sizes(ctx, None)
        recvbuf = np.empty(local_size * dtype.itemsize, dtype=np.uint8)
        with _element_datatype(dtype.itemsize) as (datatype, scale):
            collective_call(ctx, "Recv", ctx.comm.Recv, [recvbuf, local_size * scale, datatype],
                            source=ROOT, tag=ctx.rank)
        return _from_bytes(recvbuf, dtype, ())
    sizes = block_partition(n, ctx.size)
    check_count_limit(ctx, sizes, "scatter_stream")
    local_size = scatter_sizes(ctx, sizes)
    # Copy the first block into root's memory.
    local = _read_block(stream, local_size, dtype)
    # Block 0 is the largest, so one buffer fits every other block.
    sendbuf = np.empty(int(sizes[0]), dtype=dtype)
    with _element_datatype(dtype.itemsize) as (datatype, scale):
        for dest in range(1, ctx.size):
            count = int(sizes[dest])
            sendbuf[:count] = _read_block(stream, count, dtype)
            collective_call(ctx, "Send", ctx.comm.Send, [_as_bytes(sendbuf[:count]), count * scale, datatype],
                            dest=dest, tag=dest)
            logger.debug("sent %d elements to rank %d", count, dest)
    return local


# ---------------------------------------------------------------------------
# Bucketed all-to-all
# ---------------------------------------------------------------------------

def _destinations(messages: np.ndarray, target: Callable[[Any], Any], vectorized: bool) -> np.ndarray:
    """Destination rank of every message."""
    if vectorized:
        return np.asarray(target(messages), dtype=np.int64).reshape(-1)
    return np.fromiter((target(m) for m in messages), dtype=np.int64, count=messages.shape[0])


def exchange(ctx: GroupContext, messages, target: Callable[[Any], Any], vectorized: bool = False) -> np.ndarray:
    """Send every message to the rank chosen by `target`.

    By default `target` maps one message to its destination rank. With
    ``vectorized=True`` it is called once with the whole message array and
    must return one rank per message. Messages from one source to one
    destination keep their relative order; at the destination, blocks
    from different sources follow source rank order.
    """
    messages = _as_sequence(messages, "exchange")
    if not ctx.is_serial:
        messages = agree_layout(ctx, messages, "exchange")
    dtype, tail = messages.dtype, messages.shape[1:]
    # Destination rank of each message.
    dest = _destinations(messages, target, vectorized)
    if dest.size != messages.shape[0]:
        raise ValueError(f"exchange: target returned {dest.size} ranks for {messages.shape[0]} messages")
    if dest.size and (dest.min() < 0 or dest.max() >= ctx.size):
        raise ValueError(f"exchange: destination ranks must lie in [0, {ctx.size})")
    # Count messages per destination.
    send_counts = np.bincount(dest, minlength=ctx.size).astype(np.int64)
    # Bucket by destination; a stable sort keeps per-destination order.
    order = np.argsort(dest, kind="stable")
    sendbuf = messages[order]
    if ctx.is_serial:
        return sendbuf
    # Each destination learns how much arrives from every source.
    recv_counts = exchange_counts(ctx, send_counts)
    check_count_limit(ctx, send_counts, "exchange (send)")
    check_count_limit(ctx, recv_counts, "exchange (recv)")
    elem = _element_bytes(dtype, tail)
    # Sources land back to back in rank order.
    recvbuf = np.empty(int(recv_counts.sum()) * elem, dtype=np.uint8)
    # Move the payload.
    with _element_datatype(elem) as (datatype, scale):
        collective_call(
            ctx, "Alltoallv", ctx.comm.Alltoallv,
            [_as_bytes(sendbuf), send_counts * scale, excl_prefix_sum(send_counts) * scale, datatype],
            [recvbuf, recv_counts * scale, displacements(recv_counts) * scale, datatype],
        )
    return _from_bytes(recvbuf, dtype, tail)
