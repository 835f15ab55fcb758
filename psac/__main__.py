# -*- coding: utf-8 -*-
"""Entry point for ``python -m psac`` (launch with ``mpirun -n P``)."""

# Import the driver.
from .cli import main

raise SystemExit(main())
