"""One-shot host configuration over the remote command channel."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass

import paramiko

from dockyard.core.interfaces import RemoteCommandRunner
from dockyard.exceptions import RemoteExecutionError
from dockyard.services.ssh import run_remote_command

logger = logging.getLogger(__name__)

START_DOCKER_COMMAND = "sudo service docker start"
STOP_DOCKER_COMMAND = "sudo service docker stop"
UPGRADE_DOCKER_COMMAND = "sudo apt-get update && sudo apt-get install --upgrade lxc-docker"


@dataclass(frozen=True)
class RemoteTarget:
    """SSH endpoint of a machine."""

    host: str
    port: int
    user: str
    key_path: str


def hostname_command(name: str) -> str:
    """Shell command that sets the hostname and maps it to localhost."""
    quoted = shlex.quote(name)
    return (
        f"echo {shlex.quote(f'127.0.0.1 {name}')} | sudo tee -a /etc/hosts"
        f" && sudo hostname {quoted}"
        f" && echo {quoted} | sudo tee /etc/hostname"
    )


class RemoteBootstrap:
    """Run fixed host configuration commands on a machine.

    Every method is a single blocking remote invocation without retries.

    Parameters
    ----------
    runner : RemoteCommandRunner
        Callable that executes a command and returns its exit status
    """

    def __init__(self, runner: RemoteCommandRunner = run_remote_command) -> None:
        self.runner = runner

    def run(self, target: RemoteTarget, command: str) -> None:
        """Execute ``command`` on ``target``.

        Raises
        ------
        RemoteExecutionError
            If the host is unreachable or the command exits non-zero
        """
        if not target.host:
            raise RemoteExecutionError(
                command, None, "remote command requires a known IP address"
            )

        try:
            exit_status = self.runner(
                target.host, target.port, target.user, target.key_path, command
            )
        except (OSError, paramiko.SSHException) as e:
            raise RemoteExecutionError(
                command, None, f"unable to reach {target.host}:{target.port}: {e}"
            ) from e

        if exit_status != 0:
            raise RemoteExecutionError(command, exit_status)

    def set_hostname(self, target: RemoteTarget, name: str) -> None:
        logger.debug("Setting hostname: %s", name)
        self.run(target, hostname_command(name))

    def start_docker(self, target: RemoteTarget) -> None:
        logger.debug("Starting Docker...")
        self.run(target, START_DOCKER_COMMAND)

    def stop_docker(self, target: RemoteTarget) -> None:
        logger.debug("Stopping Docker...")
        self.run(target, STOP_DOCKER_COMMAND)

    def upgrade_docker(self, target: RemoteTarget) -> None:
        logger.debug("Upgrading Docker")
        self.run(target, UPGRADE_DOCKER_COMMAND)
