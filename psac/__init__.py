# -*- coding: utf-8 -*-
"""PSAC package.

Collective-communication layer for rank-parallel string and array
algorithms (suffix array construction, nearest smaller values): block
partitioning, variable-length gather/scatter, distributed prefix sums and
bucketed all-to-all exchange over MPI.
"""

# Expose a version string for provenance.
__version__ = "1.0.0"

# Convenience exports for callers that import from the package root.
from .collectives import exchange, gather, scatter, scatter_stream, scatter_string  # noqa: E402
from .context import GroupContext, Role, get_context, serial_context  # noqa: E402
from .errors import CollectiveError, CountOverflowError, PsacError, RoleError  # noqa: E402
from .partition import block_bounds, block_partition, displacements, rank_of_index  # noqa: E402
from .prefix_sum import excl_prefix_sum, global_prefix_sum, striped_excl_prefix_sum  # noqa: E402

__all__ = [
    "__version__",
    "GroupContext",
    "Role",
    "get_context",
    "serial_context",
    "PsacError",
    "CollectiveError",
    "RoleError",
    "CountOverflowError",
    "block_partition",
    "displacements",
    "block_bounds",
    "rank_of_index",
    "excl_prefix_sum",
    "global_prefix_sum",
    "striped_excl_prefix_sum",
    "gather",
    "scatter",
    "scatter_string",
    "scatter_stream",
    "exchange",
]
