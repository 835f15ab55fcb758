# -*- coding: utf-8 -*-
"""Tests for block decomposition."""

import numpy as np
import pytest

from psac.partition import block_bounds, block_partition, displacements, rank_of_index


@pytest.mark.parametrize("n", [0, 1, 2, 7, 10, 64, 1001])
@pytest.mark.parametrize("p", [1, 2, 3, 4, 7, 16])
def test_sizes_sum_to_n_and_differ_by_at_most_one(n, p):
    sizes = block_partition(n, p)
    assert sizes.shape == (p,)
    assert sizes.sum() == n
    assert sizes.max() - sizes.min() <= 1
    # Larger blocks come first.
    assert np.all(np.diff(sizes) <= 0)


def test_ten_over_three():
    sizes = block_partition(10, 3)
    assert sizes.tolist() == [4, 3, 3]
    assert displacements(sizes).tolist() == [0, 4, 7]


def test_zero_extent_gives_empty_blocks():
    assert block_partition(0, 5).tolist() == [0, 0, 0, 0, 0]
    assert displacements(block_partition(0, 5)).tolist() == [0, 0, 0, 0, 0]


def test_partition_is_pure():
    assert np.array_equal(block_partition(123, 9), block_partition(123, 9))


def test_invalid_arguments():
    with pytest.raises(ValueError):
        block_partition(10, 0)
    with pytest.raises(ValueError):
        block_partition(-1, 2)


def test_block_bounds_tile_the_extent():
    n, p = 23, 5
    bounds = [block_bounds(n, p, r) for r in range(p)]
    assert bounds[0][0] == 0
    assert bounds[-1][1] == n
    for (_, stop), (start, _) in zip(bounds, bounds[1:]):
        assert stop == start


def test_rank_of_index_matches_bounds():
    n, p = 10, 4
    owners = rank_of_index(np.arange(n), n, p)
    for r in range(p):
        start, stop = block_bounds(n, p, r)
        assert np.all(owners[start:stop] == r)


def test_rank_of_index_skips_empty_trailing_blocks():
    # sizes [1, 1, 0, 0]
    assert rank_of_index(np.array([0, 1]), 2, 4).tolist() == [0, 1]
