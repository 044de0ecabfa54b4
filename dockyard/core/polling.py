"""Convergence polling with optional deadlines."""

from __future__ import annotations

import logging
import socket
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from dockyard.constants import (
    IP_POLL_INTERVAL_SECONDS,
    SECURITY_GROUP_POLL_INTERVAL_SECONDS,
    SSH_POLL_INTERVAL_SECONDS,
    STATE_POLL_INTERVAL_SECONDS,
    TCP_CONNECT_TIMEOUT_SECONDS,
)
from dockyard.exceptions import PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollPolicy:
    """Intervals and deadline for the driver's convergence loops.

    Attributes
    ----------
    ip_interval : float
        Seconds between public IP lookups after launch
    state_interval : float
        Seconds between state lookups while waiting for running
    security_group_interval : float
        Seconds between lookups of a freshly created security group
    ssh_interval : float
        Seconds between TCP probes of the SSH port
    timeout : float | None
        Deadline applied to each loop separately; None waits forever
    """

    ip_interval: float = IP_POLL_INTERVAL_SECONDS
    state_interval: float = STATE_POLL_INTERVAL_SECONDS
    security_group_interval: float = SECURITY_GROUP_POLL_INTERVAL_SECONDS
    ssh_interval: float = SSH_POLL_INTERVAL_SECONDS
    timeout: float | None = None


def poll_until(
    check: Callable[[], T],
    interval: float,
    timeout: float | None = None,
    description: str = "condition",
    retry_on: tuple[type[BaseException], ...] = (),
) -> T:
    """Call ``check`` until it returns a truthy value.

    Parameters
    ----------
    check : Callable[[], T]
        Read-only probe; its first truthy result is returned
    interval : float
        Seconds to sleep between attempts
    timeout : float | None
        Give up after this many seconds; None polls forever
    description : str
        What is being waited for, used in logs and the timeout error
    retry_on : tuple[type[BaseException], ...]
        Exception types that count as "not yet" instead of failing

    Returns
    -------
    T
        The first truthy value returned by ``check``

    Raises
    ------
    PollTimeoutError
        If ``timeout`` elapses before the condition holds
    """
    start = time.monotonic()
    attempt = 0

    while True:
        attempt += 1
        try:
            result = check()
        except retry_on as e:
            logger.debug("waiting for %s (attempt %d): %s", description, attempt, e)
        else:
            if result:
                return result

        waited = time.monotonic() - start
        if timeout is not None and waited + interval > timeout:
            raise PollTimeoutError(description, waited)

        time.sleep(interval)


def wait_for_tcp(
    host: str,
    port: int,
    interval: float = SSH_POLL_INTERVAL_SECONDS,
    timeout: float | None = None,
) -> None:
    """Block until a TCP connection to ``host:port`` succeeds.

    Raises
    ------
    PollTimeoutError
        If ``timeout`` elapses first
    """

    def _connect() -> bool:
        with socket.create_connection((host, port), timeout=TCP_CONNECT_TIMEOUT_SECONDS):
            return True

    poll_until(
        _connect,
        interval=interval,
        timeout=timeout,
        description=f"tcp {host}:{port}",
        retry_on=(OSError,),
    )
