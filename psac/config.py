# -*- coding: utf-8 -*-
"""JSON configuration for the PSAC driver."""

# Import copy to keep defaults untouched.
import copy

# Import json for the configuration file.
import json

# Import os for existence checks.
import os

# Import typing primitives.
from typing import Any, Dict, Optional

# Defaults; a configuration file only needs to override what differs.
DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {"level": "INFO"},
    "diagnostics": {
        "node_report": False,
        "attach_rank": None,
        "release_path": None,
        "poll_interval_s": 1.0,
    },
    "dump": {"basename": None},
}


def deep_update(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `override` into `base` (in place) and return it."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            deep_update(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load `path` over the defaults; a missing file yields the defaults."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as fh:
            user_cfg = json.load(fh)
        if not isinstance(user_cfg, dict):
            raise ValueError(f"Configuration file {path} must contain a JSON object")
        deep_update(cfg, user_cfg)
    return cfg
