# -*- coding: utf-8 -*-
"""Tests for the bucketed all-to-all exchange."""

import numpy as np
import pytest

from psac import negotiation
from psac.collectives import exchange, scatter
from psac.context import serial_context
from psac.errors import CountOverflowError
from psac.partition import block_bounds, rank_of_index

from threadcomm import run_ranks


def test_parity_exchange_two_ranks():
    def body(ctx):
        messages = np.array([1, 2, 3, 4]) if ctx.is_root else np.array([], dtype=np.int64)
        return exchange(ctx, messages, lambda m: m % 2)

    results = run_ranks(2, body)
    assert results[0].tolist() == [2, 4]
    assert results[1].tolist() == [1, 3]


@pytest.mark.parametrize("p", [1, 2, 3, 4, 6])
def test_every_message_arrives_once_at_its_target(p):
    rng = np.random.default_rng(p)
    inputs = [rng.integers(0, 1000, size=rng.integers(0, 40)) for _ in range(p)]

    def target(m):
        return (m * 7 + 3) % p

    results = run_ranks(p, lambda ctx: exchange(ctx, inputs[ctx.rank], target))

    assert sum(r.size for r in results) == sum(i.size for i in inputs)
    for rank, received in enumerate(results):
        assert np.all(target(received) == rank)
    sent = np.sort(np.concatenate(inputs))
    assert np.array_equal(np.sort(np.concatenate(results)), sent)


def test_per_source_order_is_preserved():
    p = 3
    # (source, sequence number, destination)
    dtype = [("src", np.int32), ("seq", np.int32), ("dst", np.int32)]

    def body(ctx):
        dst = np.array([2, 0, 1, 2, 2, 0, 1, 1, 0, 2], dtype=np.int32)
        msgs = np.zeros(dst.size, dtype=dtype)
        msgs["src"] = ctx.rank
        msgs["seq"] = np.arange(dst.size)
        msgs["dst"] = (dst + ctx.rank) % p
        return exchange(ctx, msgs, lambda m: m["dst"])

    results = run_ranks(p, body)
    for rank, received in enumerate(results):
        assert np.all(received["dst"] == rank)
        # Blocks follow source rank order, each in sending order.
        assert np.all(np.diff(received["src"]) >= 0)
        for src in range(p):
            seq = received["seq"][received["src"] == src]
            assert np.all(np.diff(seq) > 0)


def test_exchange_rows_to_block_owner():
    n = 12

    def body(ctx):
        # Every rank holds a reversed slice of global indices with a payload column.
        start, stop = block_bounds(n, ctx.size, ctx.rank)
        idx = np.arange(n)[::-1][start:stop]
        rows = np.stack([idx, idx * idx], axis=1)
        return exchange(ctx, rows, lambda r: rank_of_index(r[:, 0], n, ctx.size), vectorized=True)

    results = run_ranks(3, body)
    for rank, rows in enumerate(results):
        start, stop = block_bounds(n, 3, rank)
        assert rows.shape[1] == 2
        assert sorted(rows[:, 0].tolist()) == list(range(start, stop))
        assert np.array_equal(rows[:, 1], rows[:, 0] ** 2)


def test_empty_everywhere():
    results = run_ranks(3, lambda ctx: exchange(ctx, np.zeros(0, dtype=np.float64), lambda m: m.astype(int)))
    assert all(r.size == 0 and r.dtype == np.float64 for r in results)


def test_out_of_range_target_is_rejected():
    with pytest.raises(ValueError):
        exchange(serial_context(), np.arange(3), lambda m: m)


def test_target_length_mismatch_is_rejected():
    with pytest.raises(ValueError):
        exchange(serial_context(), np.arange(3), lambda m: np.zeros(2, dtype=int), vectorized=True)


def test_serial_exchange_keeps_order():
    out = exchange(serial_context(), np.array([5, 3, 9]), lambda m: 0)
    assert out.tolist() == [5, 3, 9]


def test_scatter_then_exchange_to_round_robin():
    data = np.arange(20, dtype=np.int64)

    def body(ctx):
        local = scatter(ctx, data if ctx.is_root else None)
        return exchange(ctx, local, lambda m: m % ctx.size)

    results = run_ranks(4, body)
    for rank, received in enumerate(results):
        assert received.tolist() == list(range(rank, 20, 4))


def test_parity_exchange_of_plain_lists():
    # An empty list has no dtype of its own; it takes the one the other rank sends.
    def body(ctx):
        return exchange(ctx, [1, 2, 3, 4] if ctx.is_root else [], lambda m: m % 2)

    results = run_ranks(2, body)
    assert results[0].tolist() == [2, 4]
    assert results[1].tolist() == [1, 3]
    assert all(r.dtype == np.asarray([1]).dtype for r in results)


def test_target_sees_one_message_at_a_time():
    seen = []

    def target(m):
        seen.append(np.ndim(m))
        return 0 if m < 3 else 1

    results = run_ranks(2, lambda ctx: exchange(ctx, np.arange(5) if ctx.is_root else np.arange(0), target))
    assert results[0].tolist() == [0, 1, 2]
    assert results[1].tolist() == [3, 4]
    assert set(seen) == {0}


def test_vectorized_target_is_called_once():
    calls = []

    def target(m):
        calls.append(m.shape)
        return np.zeros(m.shape[0], dtype=np.int64)

    out = exchange(serial_context(), np.arange(6).reshape(3, 2), target, vectorized=True)
    assert calls == [(3, 2)]
    assert out.tolist() == [[0, 1], [2, 3], [4, 5]]


def test_mismatched_element_types_are_rejected():
    def body(ctx):
        messages = np.arange(3, dtype=np.int64) if ctx.is_root else np.arange(3, dtype=np.float32)
        return exchange(ctx, messages, lambda m: 0)

    with pytest.raises(TypeError):
        run_ranks(2, body)


def test_exchange_over_count_limit_raises(monkeypatch):
    monkeypatch.setattr(negotiation, "MAX_COUNT", 3)

    def body(ctx):
        return exchange(ctx, np.arange(4) if ctx.is_root else np.arange(0), lambda m: 1)

    with pytest.raises(CountOverflowError):
        run_ranks(2, body)


def test_count_limit_applies_to_elements_not_bytes(monkeypatch):
    # Two int64 rows of width 4 are 64 bytes but only two elements.
    monkeypatch.setattr(negotiation, "MAX_COUNT", 2)

    def body(ctx):
        rows = np.arange(8, dtype=np.int64).reshape(2, 4) if ctx.is_root else np.zeros((0, 4), dtype=np.int64)
        return exchange(ctx, rows, lambda r: 1)

    results = run_ranks(2, body)
    assert results[1].tolist() == [[0, 1, 2, 3], [4, 5, 6, 7]]
    assert results[0].shape == (0, 4)
