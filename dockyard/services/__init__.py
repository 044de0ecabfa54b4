"""Remote host services (SSH, bootstrap commands)."""

from __future__ import annotations

from dockyard.services.bootstrap import RemoteBootstrap, RemoteTarget
from dockyard.services.ssh import SSHManager, run_remote_command

__all__ = [
    "SSHManager",
    "run_remote_command",
    "RemoteBootstrap",
    "RemoteTarget",
]
