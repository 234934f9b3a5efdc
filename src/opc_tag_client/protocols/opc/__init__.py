"""OPC UA collaborator for the tag client.

This package provides:
- abstract interfaces (no external deps)
- the python-opcua session wrapper and an in-process simulator, both of
  which raise a clear error when `opcua` is not installed
"""

from __future__ import annotations

__all__ = [
    "DataChangeHandler",
    "OPCClientInterface",
    "OPCSimulator",
    "UAClient",
]

from .base_opc import DataChangeHandler, OPCClientInterface

# Optional imports; the wrappers raise at construction when opcua is missing.
try:
    from .ua_client import UAClient  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    UAClient = None  # type: ignore

try:
    from .simulator import OPCSimulator  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    OPCSimulator = None  # type: ignore
