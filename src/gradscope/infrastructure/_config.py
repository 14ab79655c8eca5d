"""
Engine configuration.

Configuration is read from environment variables, following the same
opt-in convention used for native debug switches:

- ``GRADSCOPE_BACKEND``: default backend name for new engines ("cpu").
- ``GRADSCOPE_DEBUG``: enable debug mode (per-kernel NaN checks and DEBUG
  log lines). Any value other than "0", "", "false" (any case) enables it.

An explicit `EngineConfig` passed to `Engine` always wins over the
environment.

The numerical-stability epsilon used by kernels and update rules that divide
is a fixed constant (`EPSILON`) and is not configurable per call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

EPSILON: float = 1e-8
"""Fixed epsilon guarding divisions by exact zero."""

DEFAULT_BACKEND = "cpu"

_FALSY = ("0", "", "false", "False", "FALSE")


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default) not in _FALSY


@dataclass(frozen=True)
class EngineConfig:
    """
    Immutable engine configuration.

    Attributes
    ----------
    backend : str
        Name of the backend that new engines activate on construction.
    debug : bool
        If True, every kernel output is read back and checked for NaNs, and a
        DEBUG log line is emitted per kernel with its wall time.
    """

    backend: str = DEFAULT_BACKEND
    debug: bool = False

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build a configuration from ``GRADSCOPE_*`` environment variables.
        """
        backend = os.environ.get("GRADSCOPE_BACKEND", "").strip() or DEFAULT_BACKEND
        return cls(backend=backend, debug=_env_flag("GRADSCOPE_DEBUG"))
