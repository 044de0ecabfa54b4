"""Protocols for the collaborators the driver consumes."""

from __future__ import annotations

from typing import Protocol

from dockyard.core.models import (
    BlockDeviceMapping,
    Instance,
    IpPermission,
    KeyPairInfo,
    SecurityGroup,
    Subnet,
)


class ProviderGateway(Protocol):
    """Cloud API operations the driver relies on.

    ``dockyard.providers.aws.gateway.EC2Gateway`` is the production
    implementation; tests substitute an in-memory fake.
    """

    def get_key_pair(self, name: str) -> KeyPairInfo | None: ...

    def import_key_pair(self, name: str, public_key: bytes) -> None: ...

    def delete_key_pair(self, name: str) -> None: ...

    def get_subnets(self, filters: dict[str, str]) -> list[Subnet]: ...

    def get_security_groups(self, vpc_id: str | None = None) -> list[SecurityGroup]: ...

    def get_security_group_by_id(self, group_id: str) -> SecurityGroup: ...

    def create_security_group(
        self, name: str, description: str, vpc_id: str
    ) -> SecurityGroup: ...

    def authorize_security_group(
        self, group_id: str, permissions: list[IpPermission]
    ) -> None: ...

    def delete_security_group(self, group_id: str) -> None: ...

    def run_instance(
        self,
        ami: str,
        instance_type: str,
        zone: str,
        min_count: int,
        max_count: int,
        security_group_id: str,
        key_name: str,
        subnet_id: str,
        block_device_mapping: BlockDeviceMapping,
        iam_profile: str = "",
    ) -> Instance: ...

    def get_instance(self, instance_id: str) -> Instance: ...

    def start_instance(self, instance_id: str) -> None: ...

    def stop_instance(self, instance_id: str, force: bool = False) -> None: ...

    def restart_instance(self, instance_id: str) -> None: ...

    def terminate_instance(self, instance_id: str) -> None: ...

    def create_tags(self, resource_id: str, tags: dict[str, str]) -> None: ...


class RemoteCommandRunner(Protocol):
    """Runs one shell command on a remote host and returns its exit status."""

    def __call__(
        self, host: str, port: int, user: str, key_path: str, command: str
    ) -> int: ...
