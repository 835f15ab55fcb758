# -*- coding: utf-8 -*-
"""Command line driver for PSAC."""

# Import argparse for CLI parsing.
import argparse

# Import logging for progress reports.
import logging

# Import os for the input size.
import os

# Import typing primitives.
from typing import Any, Dict, Iterator, List, Optional

# Import numpy.
import numpy as np

# Import local modules.
from .collectives import scatter_stream
from .config import load_config
from .context import GroupContext, Role, get_context
from .diagnostics import node_distribution, wait_debug_attach, write_files
from .logging_utils import setup_logging
from .prefix_sum import global_prefix_sum

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    # Create argument parser with a program name.
    ap = argparse.ArgumentParser(prog="psac")
    # Configuration file path.
    ap.add_argument("--config", default="config.json", help="Path to configuration JSON file.")
    # Logging level.
    ap.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    # Input distributed from rank 0.
    ap.add_argument("--input", default=None, help="File scattered byte-wise from rank 0.")
    ap.add_argument("--dump", default=None, help="Basename of the per-rank dump files.")
    ap.add_argument("--node-report", action="store_true", help="Log which ranks share a host.")
    ap.add_argument("--attach-rank", type=int, default=None, help="Rank that waits for a debugger.")
    # Return parsed args.
    return ap.parse_args(argv)


def apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Let command-line flags override the configuration file."""
    if args.log_level is not None:
        cfg["logging"]["level"] = args.log_level
    if args.node_report:
        cfg["diagnostics"]["node_report"] = True
    if args.attach_rank is not None:
        cfg["diagnostics"]["attach_rank"] = args.attach_rank
    if args.dump is not None:
        cfg["dump"]["basename"] = args.dump
    return cfg


def iter_file_bytes(fh, chunk_size: int = 1 << 16) -> Iterator[int]:
    """Yield the bytes of an open binary file one at a time."""
    for chunk in iter(lambda: fh.read(chunk_size), b""):
        yield from chunk


def scatter_input_file(ctx: GroupContext, path: str) -> np.ndarray:
    """Stream `path` from rank 0 and return this rank's block of bytes."""
    if not ctx.is_root:
        return scatter_stream(ctx, Role.MEMBER)
    n = os.path.getsize(path)
    logger.info("scattering %d bytes of %s over %d ranks", n, path, ctx.size)
    with open(path, "rb") as fh:
        return scatter_stream(ctx, Role.ROOT, iter_file_bytes(fh), n=n, dtype=np.uint8)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the driver; every rank executes the same sequence of collectives."""
    args = parse_args(argv)
    cfg = apply_overrides(load_config(args.config), args)
    ctx = get_context()
    setup_logging(cfg["logging"]["level"], ctx)

    diag = cfg["diagnostics"]
    if diag["attach_rank"] is not None:
        wait_debug_attach(ctx, int(diag["attach_rank"]), diag["release_path"], float(diag["poll_interval_s"]))
    if diag["node_report"]:
        node_distribution(ctx)

    if args.input:
        local = scatter_input_file(ctx, args.input)
        # Inclusive prefix of block sizes gives the end of this rank's range.
        end = int(global_prefix_sum(ctx, np.array([local.size], dtype=np.int64))[0])
        logger.info("holding %d bytes, global range [%d, %d)", local.size, end - local.size, end)
        if cfg["dump"]["basename"]:
            write_files(ctx, cfg["dump"]["basename"], local)
    return 0
