# -*- coding: utf-8 -*-
"""Diagnostics: node distribution report, per-rank dumps, debug attach."""

# Import logging; diagnostics go to the log stream, not to stdout.
import logging

# Import os for pid and release-file polling.
import os

# Import tempfile for the default release-file location.
import tempfile

# Import time for the polling interval.
import time

# Import typing primitives.
from typing import Dict, List, Optional, Tuple

# Import numpy for element iteration.
import numpy as np

# Import local context helpers.
from .context import ROOT, GroupContext, collective_call

logger = logging.getLogger(__name__)


def group_ranks_by_host(hosts: List[str]) -> List[Tuple[str, List[int]]]:
    """Group rank indices by host name.

    Ranks are sorted within each host and hosts are ordered by their
    lowest rank.
    """
    procs_per_node: Dict[str, List[int]] = {}
    for rank, host in enumerate(hosts):
        procs_per_node.setdefault(host, []).append(rank)
    distribution = [(host, sorted(ranks)) for host, ranks in procs_per_node.items()]
    distribution.sort(key=lambda item: item[1][0])
    return distribution


def render_node_distribution(distribution: List[Tuple[str, List[int]]], p: int) -> str:
    """Render the node distribution as a human-readable block."""
    lines = [
        "== Node distribution ==",
        f"== p={p} processes on {len(distribution)} nodes ==",
    ]
    for host, ranks in distribution:
        lines.append(f"--  Node: '{host}' ({len(ranks)}/{p})")
        lines.append("        Ranks: " + ", ".join(str(r) for r in ranks))
    return "\n".join(lines)


def node_distribution(ctx: GroupContext) -> Optional[List[Tuple[str, List[int]]]]:
    """Report which ranks share a host; returns the grouping on root only."""
    # Gather all host names to root.
    if ctx.is_serial:
        hosts = [ctx.host]
    else:
        hosts = collective_call(ctx, "gather", ctx.comm.gather, ctx.host, root=ROOT)
    if not ctx.is_root:
        return None
    distribution = group_ranks_by_host(hosts)
    logger.info("%s", render_node_distribution(distribution, ctx.size))
    return distribution


def rank_filename(basename: str, size: int, rank: int) -> str:
    """Return '{basename}.{size}.{rank}', both zero-padded to the digits of `size`."""
    width = len(str(size))
    return f"{basename}.{size:0{width}d}.{rank:0{width}d}"


def write_files(ctx: GroupContext, basename: str, values) -> str:
    """Write this rank's sequence to its own file, one element per line."""
    path = rank_filename(basename, ctx.size, ctx.rank)
    logger.info("writing to file %s", path)
    with open(path, "w", encoding="utf-8") as fh:
        for v in np.asarray(values):
            fh.write(f"{v}\n")
    return path


def default_release_path() -> str:
    """Release file polled by a rank waiting for a debugger."""
    return os.path.join(tempfile.gettempdir(), f"psac-release.{os.getpid()}")


def wait_debug_attach(ctx: GroupContext, wait_rank: int, release_path: Optional[str] = None,
                      interval: float = 1.0) -> None:
    """Stall `wait_rank` until its release file exists, then synchronise the group.

    Only meant for attaching a debugger to a running job; the other ranks
    block in the barrier meanwhile.
    """
    if ctx.rank == wait_rank:
        path = release_path or default_release_path()
        logger.warning("rank %d is waiting in process %d; create %s to continue", ctx.rank, os.getpid(), path)
        while not os.path.exists(path):
            time.sleep(interval)
    if not ctx.is_serial:
        collective_call(ctx, "Barrier", ctx.comm.Barrier)
