# -*- coding: utf-8 -*-
"""Logging utilities for PSAC."""

# Import the standard logging module.
import logging

# Import the group context for the record prefix.
from .context import GroupContext


def setup_logging(level: str, ctx: GroupContext) -> None:
    """Configure Python logging with a rank-aware format.

    Parameters
    ----------
    level : str
        Logging level name (e.g., 'DEBUG', 'INFO').
    ctx : GroupContext
        Process group; every record is prefixed with 'rank/size@host'
        so interleaved stderr from many ranks stays readable.
    """
    # Convert the level string into an actual numeric level (defaults to INFO).
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    # Pad the rank to the width of the group size.
    width = len(str(ctx.size))
    # Configure the root logger once; records go to stderr, never to stdout.
    logging.basicConfig(
        level=numeric_level,
        format=f"%(asctime)s [%(levelname)s] rank={ctx.rank:0{width}d}/{ctx.size}@{ctx.host} %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
