"""Global constants for dockyard.

This module contains application-wide constants that are used across multiple
components. Provider-specific tables live in ``dockyard.providers.aws.constants``.
"""

from enum import Enum

DRIVER_NAME = "amazonec2"
"""Name under which the driver registers with the orchestrator."""

DEFAULT_DOCKER_PORT = 2376
"""TCP port of the remote Docker daemon (TLS).

Used for the machine URL and for the inbound firewall rule.
"""

DEFAULT_SWARM_PORT = 3376
"""TCP port of the Swarm manager.

Only opened when the machine is a Swarm master. Overridden by the port
of the configured swarm host.
"""

SSH_PORT = 22
"""TCP port the machine accepts SSH connections on."""

DEFAULT_SSH_USER = "ubuntu"
"""Login user of the default Ubuntu images."""

DOCKER_CONFIG_DIR = "/etc/docker"
"""Directory on the remote host holding Docker daemon configuration."""

IP_POLL_INTERVAL_SECONDS = 5.0
"""Delay between public IP lookups while a fresh instance boots."""

STATE_POLL_INTERVAL_SECONDS = 1.0
"""Delay between state lookups while waiting for the running state."""

SECURITY_GROUP_POLL_INTERVAL_SECONDS = 1.0
"""Delay between lookups of a freshly created security group.

The provider is eventually consistent: a group returned by the create call
may not be visible to describe calls for a few seconds.
"""

SSH_POLL_INTERVAL_SECONDS = 1.0
"""Delay between TCP connection attempts to the SSH port."""

TCP_CONNECT_TIMEOUT_SECONDS = 5.0
"""Timeout for a single TCP connection attempt."""

SSH_CONNECT_TIMEOUT_SECONDS = 30
"""Timeout in seconds for establishing one SSH session."""

MAX_COMMAND_LENGTH = 10000
"""Maximum length in characters for commands sent to the remote host."""

DEFAULT_STORE_DIR = "~/.dockyard/machines"
"""Root of the local machine store when ``DOCKYARD_STORE`` is not set."""

MACHINE_FILE_NAME = "machine.yaml"
"""File inside a machine directory that holds configuration and state."""

SSH_KEY_FILE_NAME = "id_rsa"
"""Private key file inside a machine directory."""

EXIT_ERROR = 1
"""Exit code indicating a general application error."""

EXIT_CONFIG_ERROR = 2
"""Exit code indicating a configuration error."""


class LifecycleState(str, Enum):
    """Machine lifecycle states as seen by the orchestrator."""

    STARTING = "Starting"
    RUNNING = "Running"
    STOPPING = "Stopping"
    STOPPED = "Stopped"
    ERROR = "Error"
    UNKNOWN = "Unknown"

    @classmethod
    def from_provider(cls, raw_state: str | None) -> "LifecycleState":
        """Map a raw EC2 instance state name to a lifecycle state.

        Parameters
        ----------
        raw_state : str | None
            Instance state name reported by the provider (e.g. ``"pending"``)

        Returns
        -------
        LifecycleState
            Matching lifecycle state; unrecognized values map to ERROR
        """
        return _PROVIDER_STATES.get(raw_state or "", cls.ERROR)


_PROVIDER_STATES = {
    "pending": LifecycleState.STARTING,
    "running": LifecycleState.RUNNING,
    "stopping": LifecycleState.STOPPING,
    "shutting-down": LifecycleState.STOPPING,
    "stopped": LifecycleState.STOPPED,
}
