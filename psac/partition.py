# -*- coding: utf-8 -*-
"""Block decomposition of a global extent across ranks.

Every decomposition in psac goes through `block_partition`, so scatter,
stream scatter and the ownership lookup agree on which rank holds which
global index.
"""

# Import numpy for size and offset arrays.
import numpy as np


def block_partition(n: int, p: int) -> np.ndarray:
    """Split `n` elements into `p` contiguous blocks.

    Parameters
    ----------
    n : int
        Global element count, ``n >= 0``.
    p : int
        Number of ranks, ``p >= 1``.

    Returns
    -------
    np.ndarray
        int64 sizes, one per rank. They sum to `n`, differ by at most one,
        and never increase with rank: rank r holds ``n // p + 1`` elements
        when ``r < n % p`` and ``n // p`` otherwise.
    """
    if p < 1:
        raise ValueError(f"Group size must be positive, got {p}")
    if n < 0:
        raise ValueError(f"Extent must be non-negative, got {n}")
    sizes = np.full(p, n // p, dtype=np.int64)
    # Leftover elements go one each to the lowest ranks.
    sizes[: (n % p)] += 1
    return sizes


def displacements(sizes) -> np.ndarray:
    """Offset of each block in the concatenation of all blocks."""
    sizes = np.asarray(sizes, dtype=np.int64)
    displs = np.zeros(sizes.size, dtype=np.int64)
    displs[1:] = np.cumsum(sizes[:-1])
    return displs


def block_bounds(n: int, p: int, rank: int) -> tuple[int, int]:
    """Half-open global index range ``[start, stop)`` held by `rank`."""
    sizes = block_partition(n, p)
    start = int(displacements(sizes)[rank])
    return start, start + int(sizes[rank])


def rank_of_index(idx, n: int, p: int) -> np.ndarray:
    """Rank holding each global index in `idx` under ``block_partition(n, p)``."""
    sizes = block_partition(n, p)
    # Exclusive upper bound of every block.
    stops = np.cumsum(sizes)
    # An index belongs to the first block whose stop lies beyond it.
    return np.searchsorted(stops, np.asarray(idx), side="right").astype(np.int32)
