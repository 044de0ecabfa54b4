"""Exception types raised by dockyard.

Provider (cloud API) failures live in ``dockyard.providers.exceptions`` and
share the ``DockyardError`` root defined here.
"""

from __future__ import annotations


class DockyardError(Exception):
    """Base class for all dockyard errors."""


class ConfigurationError(DockyardError, ValueError):
    """Missing or invalid machine option.

    Parameters
    ----------
    field : str
        Option name that failed validation
    message : str
        Human readable description of the problem
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class InvalidRegionError(ConfigurationError):
    """Region is not present in the region table."""

    def __init__(self, region: str) -> None:
        super().__init__("amazonec2-region", f"Invalid region specified: {region!r}")
        self.region = region


class ConflictError(DockyardError):
    """A remote resource already uses a name this machine needs."""


class NotFoundError(DockyardError):
    """A lookup against the provider found nothing."""


class NoSubnetFoundError(NotFoundError):
    """No subnet matches the configured zone and VPC."""

    def __init__(self, region_zone: str, vpc_id: str) -> None:
        super().__init__(
            f"unable to find a subnet in the zone: {region_zone} (vpc: {vpc_id})"
        )
        self.region_zone = region_zone
        self.vpc_id = vpc_id


class UnknownInstanceError(NotFoundError):
    """The machine has no known instance id, or the provider does not know it."""

    def __init__(self, instance_id: str | None = None) -> None:
        if instance_id:
            message = f"unknown instance: {instance_id}"
        else:
            message = "unknown instance"
        super().__init__(message)
        self.instance_id = instance_id


class RemoteExecutionError(DockyardError):
    """A command on the remote host failed or the host was unreachable.

    Parameters
    ----------
    command : str
        Command that was executed
    exit_status : int | None
        Remote exit status, or None when the command never ran
    message : str | None
        Optional override for the error message
    """

    def __init__(
        self, command: str, exit_status: int | None, message: str | None = None
    ) -> None:
        if message is None:
            message = f"remote command exited with status {exit_status}: {command}"
        super().__init__(message)
        self.command = command
        self.exit_status = exit_status


class PollTimeoutError(DockyardError, TimeoutError):
    """A convergence poll did not reach its condition before the deadline."""

    def __init__(self, description: str, waited: float) -> None:
        super().__init__(f"timed out after {waited:.1f}s waiting for {description}")
        self.description = description
        self.waited = waited


class RemoveError(DockyardError):
    """One or more teardown steps of ``remove`` failed.

    Parameters
    ----------
    errors : list[Exception]
        Failures in the order the steps ran
    """

    def __init__(self, errors: list[Exception]) -> None:
        super().__init__("; ".join(str(e) for e in errors))
        self.errors = errors
