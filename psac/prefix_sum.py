# -*- coding: utf-8 -*-
"""Local, distributed and striped prefix sums.

Sums of booleans and of integers narrower than 64 bits are accumulated
(and returned) as int64; wider integers and floats keep their own dtype.
"""

# Import numpy for scans.
import numpy as np

# Import local context helpers.
from .context import SUM, GroupContext, collective_call


def accumulator_dtype(dtype) -> np.dtype:
    """Dtype that prefix sums of `dtype` values are accumulated in."""
    dtype = np.dtype(dtype)
    if dtype.kind == "b" or (dtype.kind in "iu" and dtype.itemsize < 8):
        return np.dtype(np.int64)
    return dtype


def excl_prefix_sum(values, out=None) -> np.ndarray:
    """Exclusive prefix sum: ``out[i] = sum(values[:i])``.

    `out` may be `values` itself for an in-place scan; it then keeps its
    own dtype.
    """
    values = np.asarray(values)
    acc = accumulator_dtype(values.dtype)
    # Inclusive scan first so an aliased `out` is not read after being written.
    incl = np.cumsum(values, dtype=acc)
    if out is None:
        out = np.empty(values.shape, dtype=acc)
    if out.size:
        out[0] = 0
        out[1:] = incl[:-1]
    return out


def global_prefix_sum(ctx: GroupContext, values) -> np.ndarray:
    """Inclusive prefix sum of the global sequence split across ranks.

    Parameters
    ----------
    ctx : GroupContext
        Process group.
    values : array-like
        This rank's segment of the global sequence.

    Returns
    -------
    np.ndarray
        Element i holds the sum of all global elements up to and including
        this rank's element i, in ``accumulator_dtype(values.dtype)``.
    """
    values = np.asarray(values)
    acc = accumulator_dtype(values.dtype)
    # Local sum.
    local_sum = np.array([values.sum(dtype=acc)], dtype=acc)
    # Exclusive prefix scan of local sums.
    offset = np.zeros(1, dtype=acc)
    if not ctx.is_serial:
        collective_call(ctx, "Exscan", ctx.comm.Exscan, local_sum, offset, op=SUM)
    # The scan result on rank 0 is undefined; it starts from zero.
    if ctx.is_root:
        offset[0] = 0
    # Local inclusive scan seeded with the global prefix.
    return np.cumsum(values, dtype=acc) + offset[0]


def striped_excl_prefix_sum(ctx: GroupContext, counts) -> np.ndarray:
    """Global start offset of this rank's share of every bucket.

    `counts[i]` is the number of local elements in bucket i (same number
    of buckets on every rank). Buckets are laid out one after another in
    global order, and inside a bucket the ranks' contributions follow
    rank order. The result for bucket i is the position where this
    rank's first element of bucket i goes.
    """
    counts = np.asarray(counts)
    counts = np.ascontiguousarray(counts, dtype=accumulator_dtype(counts.dtype))
    # Sum of every bucket over all ranks.
    totals = counts.copy()
    if not ctx.is_serial:
        collective_call(ctx, "Allreduce", ctx.comm.Allreduce, counts, totals, op=SUM)
    # Start of each bucket.
    bucket_starts = excl_prefix_sum(totals, out=totals)
    # Elements in the same bucket on lower ranks.
    before = np.zeros_like(counts)
    if not ctx.is_serial:
        collective_call(ctx, "Exscan", ctx.comm.Exscan, counts, before, op=SUM)
    if ctx.is_root:
        before[:] = 0
    return bucket_starts + before
