"""Pytest configuration and fixtures for dockyard unit tests."""

import os
import sys
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

unit_root = Path(__file__).parent
if str(unit_root) not in sys.path:
    sys.path.insert(0, str(unit_root))

from fakes.fake_gateway import DEFAULT_VPC_ID, FakeEC2Gateway  # noqa: E402
from fakes.fake_remote import FakeRemoteRunner  # noqa: E402

from dockyard.core.models import MachineConfig  # noqa: E402
from dockyard.core.polling import PollPolicy  # noqa: E402
from dockyard.providers.aws.compute import EC2Driver  # noqa: E402
from dockyard.services.bootstrap import RemoteBootstrap  # noqa: E402

MACHINE_ID = "0123456789abcdef0123456789abcdef"


class FakeClock:
    """Stand-in for the ``time`` module used by the polling loops.

    ``sleep`` advances ``monotonic`` instead of blocking.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def fake_clock() -> Generator[FakeClock, None, None]:
    """Replace the polling clock so no test sleeps.

    Yields
    ------
    FakeClock
        Clock whose ``sleeps`` records every interval slept
    """
    clock = FakeClock()
    with patch("dockyard.core.polling.time", clock):
        yield clock


@pytest.fixture(autouse=True)
def clean_dockyard_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep DOCKYARD_* and AWS_* settings of the caller out of the tests."""
    for name in list(os.environ):
        if name.startswith(("DOCKYARD_", "AWS_")):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def tcp_open() -> Generator[MagicMock, None, None]:
    """Make every TCP probe succeed immediately.

    Yields
    ------
    MagicMock
        The patched ``socket.create_connection``
    """
    with patch("dockyard.core.polling.socket.create_connection") as create_connection:
        yield create_connection


@pytest.fixture
def machine_config(tmp_path: Path) -> MachineConfig:
    return MachineConfig(
        machine_name="test-machine",
        machine_id=MACHINE_ID,
        access_key="AKIDEXAMPLE",
        secret_key="secret",
        region="us-east-1",
        ami="ami-4ae27e22",
        vpc_id=DEFAULT_VPC_ID,
        store_path=str(tmp_path / "test-machine"),
    )


@pytest.fixture
def fake_gateway() -> FakeEC2Gateway:
    return FakeEC2Gateway()


@pytest.fixture
def fake_runner() -> FakeRemoteRunner:
    return FakeRemoteRunner()


@pytest.fixture
def driver(
    machine_config: MachineConfig,
    fake_gateway: FakeEC2Gateway,
    fake_runner: FakeRemoteRunner,
    tcp_open: MagicMock,
) -> EC2Driver:
    """EC2 driver wired to the fake gateway and fake remote runner."""
    return EC2Driver(
        machine_config,
        gateway=fake_gateway,
        remote=RemoteBootstrap(runner=fake_runner),
        poll=PollPolicy(),
    )
