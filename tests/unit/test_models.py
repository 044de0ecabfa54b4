"""Tests for lifecycle states and persisted records."""

import pytest

from dockyard.constants import LifecycleState
from dockyard.core.models import (
    InstanceHandle,
    KeyPairHandle,
    MachineConfig,
    MachineState,
    SecurityGroupHandle,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("pending", LifecycleState.STARTING),
        ("running", LifecycleState.RUNNING),
        ("stopping", LifecycleState.STOPPING),
        ("shutting-down", LifecycleState.STOPPING),
        ("stopped", LifecycleState.STOPPED),
        ("terminated", LifecycleState.ERROR),
        ("", LifecycleState.ERROR),
        (None, LifecycleState.ERROR),
    ],
)
def test_lifecycle_state_from_provider(raw, expected):
    assert LifecycleState.from_provider(raw) is expected


def test_lifecycle_state_values_are_strings():
    assert LifecycleState.RUNNING == "Running"
    assert LifecycleState("Stopped") is LifecycleState.STOPPED


def test_machine_config_from_dict_ignores_unknown_keys(machine_config):
    data = machine_config.to_dict()
    data["legacy_field"] = "ignored"

    assert MachineConfig.from_dict(data) == machine_config


def test_machine_config_is_immutable(machine_config):
    with pytest.raises(AttributeError):
        machine_config.region = "eu-west-1"


def test_machine_state_serializes_enum_as_value():
    state = MachineState(
        subnet_id="subnet-1111",
        vpc_id="vpc-1111",
        instance=InstanceHandle(
            instance_id="i-0001",
            ip_address="203.0.113.10",
            private_ip_address="10.0.0.5",
            state=LifecycleState.RUNNING,
        ),
        security_group=SecurityGroupHandle(group_id="sg-0001", group_name="docker-machine"),
        key_pair=KeyPairHandle(
            key_name="test-machine",
            private_key_path="/store/id_rsa",
            public_key_path="/store/id_rsa.pub",
        ),
    )

    data = state.to_dict()

    assert data["instance"]["state"] == "Running"
    assert MachineState.from_dict(data) == state


def test_machine_state_from_empty_record():
    assert MachineState.from_dict(None) == MachineState()
    assert MachineState.from_dict({}) == MachineState()
