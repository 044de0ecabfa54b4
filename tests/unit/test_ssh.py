"""Unit tests for SSH connection and command execution."""

from unittest.mock import MagicMock, call, patch

import paramiko
import pytest

from dockyard.services.ssh import SSHManager, build_ssh_command, run_remote_command


@pytest.fixture
def ssh_manager() -> SSHManager:
    """Create SSHManager instance for testing.

    Returns
    -------
    SSHManager
        Configured SSH manager instance
    """
    return SSHManager(host="203.0.113.1", key_file="/tmp/id_rsa", username="ubuntu")


def make_streams(exit_code: int = 0, out: list[str] | None = None, err: list[str] | None = None):
    stdin = MagicMock()
    stdout = MagicMock()
    stderr = MagicMock()
    stdout.channel.recv_exit_status.return_value = exit_code
    stdout.readlines.return_value = out or []
    stderr.readlines.return_value = err or []
    return stdin, stdout, stderr


def test_ssh_manager_defaults() -> None:
    manager = SSHManager(host="203.0.113.1", key_file="/tmp/id_rsa")

    assert manager.username == "ubuntu"
    assert manager.port == 22
    assert manager.client is None


@patch("dockyard.services.ssh.paramiko.SSHClient")
@patch("dockyard.services.ssh.paramiko.RSAKey.from_private_key_file")
def test_connect_success_first_attempt(
    mock_rsa_key: MagicMock, mock_ssh_client: MagicMock, ssh_manager: SSHManager
) -> None:
    """Test successful SSH connection on first attempt."""
    mock_client = MagicMock()
    mock_ssh_client.return_value = mock_client
    mock_key = MagicMock()
    mock_rsa_key.return_value = mock_key

    ssh_manager.connect()

    mock_rsa_key.assert_called_once_with("/tmp/id_rsa")
    mock_client.connect.assert_called_once_with(
        hostname="203.0.113.1",
        port=22,
        username="ubuntu",
        pkey=mock_key,
        timeout=30,
        auth_timeout=30,
        banner_timeout=30,
        look_for_keys=False,
        allow_agent=False,
    )
    assert ssh_manager.client == mock_client


@patch("dockyard.services.ssh.time.sleep")
@patch("dockyard.services.ssh.paramiko.SSHClient")
@patch("dockyard.services.ssh.paramiko.RSAKey.from_private_key_file")
def test_connect_retry_with_exponential_backoff(
    mock_rsa_key: MagicMock,
    mock_ssh_client: MagicMock,
    mock_sleep: MagicMock,
    ssh_manager: SSHManager,
) -> None:
    """Test SSH connection retry with exponential backoff delays."""
    mock_client = MagicMock()
    mock_ssh_client.return_value = mock_client
    mock_client.connect.side_effect = [
        ConnectionRefusedError("Connection refused"),
        ConnectionRefusedError("Connection refused"),
        ConnectionRefusedError("Connection refused"),
        None,
    ]

    ssh_manager.connect()

    assert mock_client.connect.call_count == 4
    assert mock_sleep.call_args_list == [call(1), call(2), call(4)]


@patch("dockyard.services.ssh.time.sleep")
@patch("dockyard.services.ssh.paramiko.SSHClient")
@patch("dockyard.services.ssh.paramiko.RSAKey.from_private_key_file")
def test_connect_gives_up_after_max_retries(
    mock_rsa_key: MagicMock,
    mock_ssh_client: MagicMock,
    mock_sleep: MagicMock,
    ssh_manager: SSHManager,
) -> None:
    mock_client = MagicMock()
    mock_ssh_client.return_value = mock_client
    mock_client.connect.side_effect = paramiko.SSHException("banner error")

    with pytest.raises(ConnectionError, match="after 3 attempts"):
        ssh_manager.connect(max_retries=3)

    assert mock_client.connect.call_count == 3


@patch("dockyard.services.ssh.paramiko.SSHClient")
@patch("dockyard.services.ssh.paramiko.RSAKey.from_private_key_file")
def test_connect_honours_timeout_env(
    mock_rsa_key: MagicMock,
    mock_ssh_client: MagicMock,
    ssh_manager: SSHManager,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("DOCKYARD_SSH_TIMEOUT", "5")
    mock_client = MagicMock()
    mock_ssh_client.return_value = mock_client

    ssh_manager.connect()

    assert mock_client.connect.call_args.kwargs["timeout"] == 5


def test_execute_command_runs_through_bash(ssh_manager: SSHManager) -> None:
    ssh_manager.client = MagicMock()
    ssh_manager.client.exec_command.return_value = make_streams(
        exit_code=3, out=["hello\n"], err=["oops\n"]
    )

    exit_code = ssh_manager.execute_command("echo 'hello'")

    assert exit_code == 3
    ssh_manager.client.exec_command.assert_called_once_with("bash -c 'echo '\"'\"'hello'\"'\"''")


def test_execute_command_logs_output_with_stream(ssh_manager: SSHManager, caplog) -> None:
    ssh_manager.client = MagicMock()
    ssh_manager.client.exec_command.return_value = make_streams(out=["100% done\n"])

    with caplog.at_level("DEBUG", logger="dockyard.services.ssh"):
        ssh_manager.execute_command("true")

    [record] = [r for r in caplog.records if getattr(r, "stream", None) == "stdout"]
    assert record.getMessage() == "100% done"


def test_execute_command_drains_output_before_exit_status(ssh_manager: SSHManager) -> None:
    events = []
    stdin, stdout, stderr = make_streams(exit_code=0)
    stdout.readlines.side_effect = lambda: events.append("stdout") or ["line\n"]
    stderr.readlines.side_effect = lambda: events.append("stderr") or []
    stdout.channel.recv_exit_status.side_effect = lambda: events.append("exit") or 0
    ssh_manager.client = MagicMock()
    ssh_manager.client.exec_command.return_value = (stdin, stdout, stderr)

    assert ssh_manager.execute_command("apt-get update") == 0

    assert events == ["stdout", "stderr", "exit"]


def test_execute_command_requires_connection(ssh_manager: SSHManager) -> None:
    with pytest.raises(RuntimeError, match="not established"):
        ssh_manager.execute_command("true")


@pytest.mark.parametrize("command", ["", "   ", "x" * 10001])
def test_execute_command_rejects_invalid_commands(ssh_manager: SSHManager, command) -> None:
    ssh_manager.client = MagicMock()

    with pytest.raises(ValueError):
        ssh_manager.execute_command(command)


def test_close_resets_client(ssh_manager: SSHManager) -> None:
    client = MagicMock()
    ssh_manager.client = client

    ssh_manager.close()

    client.close.assert_called_once()
    assert ssh_manager.client is None


@patch("dockyard.services.ssh.SSHManager")
def test_run_remote_command_closes_session(mock_manager_class: MagicMock) -> None:
    manager = mock_manager_class.return_value
    manager.execute_command.return_value = 0

    assert run_remote_command("203.0.113.1", 22, "ubuntu", "/tmp/id_rsa", "uptime") == 0

    mock_manager_class.assert_called_once_with(
        host="203.0.113.1", key_file="/tmp/id_rsa", username="ubuntu", port=22
    )
    manager.connect.assert_called_once()
    manager.close.assert_called_once()


@patch("dockyard.services.ssh.SSHManager")
def test_run_remote_command_closes_session_on_error(mock_manager_class: MagicMock) -> None:
    manager = mock_manager_class.return_value
    manager.execute_command.side_effect = RuntimeError("boom")

    with pytest.raises(RuntimeError):
        run_remote_command("203.0.113.1", 22, "ubuntu", "/tmp/id_rsa", "uptime")

    manager.close.assert_called_once()


def test_build_ssh_command() -> None:
    command = build_ssh_command("203.0.113.1", 2222, "ubuntu", "/tmp/id_rsa", "ls", "-la")

    assert command[0] == "ssh"
    assert command[command.index("-i") + 1] == "/tmp/id_rsa"
    assert command[command.index("-p") + 1] == "2222"
    assert command[-3:] == ["ubuntu@203.0.113.1", "ls", "-la"]
