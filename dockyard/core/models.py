"""Data records shared by the driver, its managers and the provider gateway."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from dockyard.constants import (
    DEFAULT_DOCKER_PORT,
    DEFAULT_SSH_USER,
    DEFAULT_SWARM_PORT,
    SSH_KEY_FILE_NAME,
    SSH_PORT,
    LifecycleState,
)


@dataclass(frozen=True)
class MachineConfig:
    """Resolved, immutable settings of one machine.

    Produced by ``dockyard.core.config.resolve_config`` and never mutated
    afterwards. Values derived at runtime (resolved subnet, instance id,
    addresses) live in ``MachineState``.
    """

    machine_name: str
    machine_id: str
    access_key: str
    secret_key: str
    region: str
    ami: str
    zone: str = "a"
    session_token: str = ""
    vpc_id: str = ""
    subnet_id: str = ""
    instance_type: str = "t2.micro"
    root_size: int = 16
    iam_instance_profile: str = ""
    security_group_name: str = "docker-machine"
    swarm_master: bool = False
    swarm_host: str = ""
    swarm_discovery: str = ""
    docker_port: int = DEFAULT_DOCKER_PORT
    swarm_port: int = DEFAULT_SWARM_PORT
    ssh_user: str = DEFAULT_SSH_USER
    ssh_port: int = SSH_PORT
    store_path: str = ""
    ca_cert_path: str = ""
    private_key_path: str = ""

    @property
    def region_zone(self) -> str:
        """Availability zone name, e.g. ``us-east-1a``."""
        return f"{self.region}{self.zone}"

    @property
    def ssh_key_path(self) -> str:
        return os.path.join(self.store_path, SSH_KEY_FILE_NAME)

    @property
    def public_key_path(self) -> str:
        return self.ssh_key_path + ".pub"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MachineConfig:
        """Build a config from a stored mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class InstanceHandle:
    """Provider identity and last known addresses of the instance."""

    instance_id: str
    ip_address: str = ""
    private_ip_address: str = ""
    state: LifecycleState = LifecycleState.UNKNOWN


@dataclass
class SecurityGroupHandle:
    group_id: str
    group_name: str


@dataclass
class KeyPairHandle:
    key_name: str
    private_key_path: str
    public_key_path: str


@dataclass
class MachineState:
    """Mutable runtime record owned by the driver.

    Persisted by the orchestrator between invocations; the driver only reads
    and writes the fields.
    """

    subnet_id: str = ""
    vpc_id: str = ""
    instance: InstanceHandle | None = None
    security_group: SecurityGroupHandle | None = None
    key_pair: KeyPairHandle | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.instance is not None:
            data["instance"]["state"] = self.instance.state.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MachineState:
        if not data:
            return cls()

        instance = None
        if data.get("instance"):
            raw = dict(data["instance"])
            raw["state"] = LifecycleState(raw.get("state", LifecycleState.UNKNOWN.value))
            instance = InstanceHandle(**raw)

        security_group = None
        if data.get("security_group"):
            security_group = SecurityGroupHandle(**data["security_group"])

        key_pair = None
        if data.get("key_pair"):
            key_pair = KeyPairHandle(**data["key_pair"])

        return cls(
            subnet_id=data.get("subnet_id", ""),
            vpc_id=data.get("vpc_id", ""),
            instance=instance,
            security_group=security_group,
            key_pair=key_pair,
        )


@dataclass(frozen=True)
class IpPermission:
    """Single inbound firewall rule."""

    protocol: str
    from_port: int
    to_port: int
    cidr: str


@dataclass
class SecurityGroup:
    group_id: str
    group_name: str
    vpc_id: str = ""
    permissions: list[IpPermission] = field(default_factory=list)


@dataclass(frozen=True)
class Subnet:
    subnet_id: str
    vpc_id: str
    availability_zone: str
    default_for_az: bool = False


@dataclass(frozen=True)
class KeyPairInfo:
    key_name: str
    fingerprint: str = ""


@dataclass(frozen=True)
class BlockDeviceMapping:
    device_name: str
    volume_size: int
    delete_on_termination: bool = True
    volume_type: str = "gp2"


@dataclass
class Instance:
    """Subset of an EC2 instance description used by the driver."""

    instance_id: str
    state: str
    ip_address: str = ""
    private_ip_address: str = ""
    tags: dict[str, str] = field(default_factory=dict)
