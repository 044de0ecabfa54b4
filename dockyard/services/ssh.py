"""SSH connection and remote command execution."""

import logging
import os
import shlex
import socket
import time

import paramiko
from paramiko.channel import ChannelFile

from dockyard.constants import (
    DEFAULT_SSH_USER,
    MAX_COMMAND_LENGTH,
    SSH_CONNECT_TIMEOUT_SECONDS,
    SSH_PORT,
)

logger = logging.getLogger(__name__)


class SSHManager:
    """Manages one SSH session to the machine and runs commands over it.

    Parameters
    ----------
    host : str
        Remote host IP address or hostname
    key_file : str
        Path to SSH private key file
    username : str
        SSH username (default: ubuntu)
    port : int
        SSH port (default: 22)

    Attributes
    ----------
    client : paramiko.SSHClient | None
        SSH client instance (None when not connected)
    """

    def __init__(
        self,
        host: str,
        key_file: str,
        username: str = DEFAULT_SSH_USER,
        port: int = SSH_PORT,
    ) -> None:
        self.host = host
        self.key_file = key_file
        self.username = username
        self.port = port
        self.client: paramiko.SSHClient | None = None

    def connect(self, max_retries: int = 5) -> None:
        """Establish SSH connection with retry logic.

        Delays between attempts: 1s, 2s, 4s, 8s.

        Parameters
        ----------
        max_retries : int
            Maximum number of connection attempts (default: 5)

        Raises
        ------
        ConnectionError
            If connection fails after all retry attempts
        OSError
            If SSH key file cannot be read
        """
        delays = [1, 2, 4, 8, 8]
        timeout_seconds = int(
            os.environ.get("DOCKYARD_SSH_TIMEOUT", str(SSH_CONNECT_TIMEOUT_SECONDS))
        )

        for attempt in range(max_retries):
            try:
                logger.debug(
                    "Attempting SSH connection to %s:%s (attempt %s/%s)",
                    self.host,
                    self.port,
                    attempt + 1,
                    max_retries,
                )

                self.client = paramiko.SSHClient()
                self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

                key = paramiko.RSAKey.from_private_key_file(self.key_file)

                self.client.connect(
                    hostname=self.host,
                    port=self.port,
                    username=self.username,
                    pkey=key,
                    timeout=timeout_seconds,
                    auth_timeout=timeout_seconds,
                    banner_timeout=timeout_seconds,
                    look_for_keys=False,
                    allow_agent=False,
                )
                return

            except (
                paramiko.ssh_exception.NoValidConnectionsError,
                paramiko.ssh_exception.SSHException,
                TimeoutError,
                ConnectionRefusedError,
                ConnectionResetError,
                socket.timeout,
            ) as e:
                if attempt < max_retries - 1:
                    time.sleep(delays[min(attempt, len(delays) - 1)])
                    continue
                raise ConnectionError(
                    f"Failed to establish SSH connection to {self.host}:{self.port} "
                    f"after {max_retries} attempts"
                ) from e

    def _log_stream(self, stream: ChannelFile, stream_type: str) -> None:
        for line in stream.readlines():
            logger.debug("%s", line.rstrip("\n"), extra={"stream": stream_type})

    def execute_command(self, command: str) -> int:
        """Run a shell command and wait for it to finish.

        Parameters
        ----------
        command : str
            Shell command to execute (run through ``bash -c``)

        Returns
        -------
        int
            Command exit code (0 = success, non-zero = failure)

        Raises
        ------
        RuntimeError
            If SSH connection is not established
        ValueError
            If command is empty or exceeds maximum length
        """
        if not command or not command.strip():
            raise ValueError("Command cannot be empty")

        if len(command) > MAX_COMMAND_LENGTH:
            raise ValueError(
                f"Command length ({len(command)}) exceeds maximum of "
                f"{MAX_COMMAND_LENGTH} characters"
            )

        if not self.client:
            raise RuntimeError("SSH connection not established")

        stdin, stdout, stderr = self.client.exec_command(
            f"bash -c {shlex.quote(command)}"
        )

        try:
            self._log_stream(stdout, "stdout")
            self._log_stream(stderr, "stderr")
            return stdout.channel.recv_exit_status()
        finally:
            stdin.close()
            stdout.close()
            stderr.close()

    def close(self) -> None:
        """Close SSH connection."""
        if self.client:
            self.client.close()
            self.client = None


def run_remote_command(
    host: str, port: int, user: str, key_path: str, command: str
) -> int:
    """Run one command on a remote host over a fresh SSH session.

    Returns
    -------
    int
        Remote exit status

    Raises
    ------
    ConnectionError
        If the host cannot be reached
    """
    manager = SSHManager(host=host, key_file=key_path, username=user, port=port)
    manager.connect()
    try:
        return manager.execute_command(command)
    finally:
        manager.close()


def build_ssh_command(
    host: str, port: int, user: str, key_path: str, *args: str
) -> list[str]:
    """Build an ``ssh`` argv for interactive or scripted use."""
    command = [
        "ssh",
        "-o",
        "StrictHostKeyChecking=no",
        "-o",
        "UserKnownHostsFile=/dev/null",
        "-o",
        "LogLevel=quiet",
        "-o",
        "IdentitiesOnly=yes",
        "-i",
        key_path,
        "-p",
        str(port),
        f"{user}@{host}",
    ]
    command.extend(args)
    return command
