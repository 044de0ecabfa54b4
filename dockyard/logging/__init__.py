"""Logging helpers for dockyard."""

from dockyard.logging.filters import (
    MachineContextFilter,
    current_machine_id,
    machine_context,
    with_machine_context,
)
from dockyard.logging.formatters import MachineFormatter

__all__ = [
    "MachineContextFilter",
    "MachineFormatter",
    "current_machine_id",
    "machine_context",
    "with_machine_context",
]
