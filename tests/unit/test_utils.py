"""Tests for dockyard utility functions."""

import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from dockyard.providers.aws.utils import (
    extract_instance_from_response,
    parse_instance,
    parse_permissions,
    parse_security_group,
    to_filters,
    to_ip_permissions,
)
from dockyard.core.models import IpPermission
from dockyard.utils import atomic_file_write


class TestAtomicFileWrite:
    """Tests for atomic file write operations."""

    def test_writes_file_atomically(self, tmp_path: Path) -> None:
        target_path = tmp_path / "machine.yaml"

        atomic_file_write(target_path, "config: {}\n")

        assert target_path.read_text() == "config: {}\n"
        assert not target_path.with_suffix(".tmp").exists()
        assert not target_path.with_suffix(".lock").exists()

    def test_applies_mode(self, tmp_path: Path) -> None:
        target_path = tmp_path / "machine.yaml"

        atomic_file_write(target_path, "secret", mode=0o640)

        assert stat.S_IMODE(os.stat(target_path).st_mode) == 0o640

    def test_default_mode_is_owner_only(self, tmp_path: Path) -> None:
        target_path = tmp_path / "machine.yaml"
        target_path.write_text("old content")
        target_path.chmod(0o644)

        atomic_file_write(target_path, "new content")

        assert target_path.read_text() == "new content"
        assert stat.S_IMODE(os.stat(target_path).st_mode) == 0o600

    def test_cleans_up_temp_file_on_write_failure(self, tmp_path: Path) -> None:
        target_path = tmp_path / "machine.yaml"

        with patch("dockyard.utils.os.fdopen", side_effect=OSError("Write failed")):
            with pytest.raises(OSError, match="Write failed"):
                atomic_file_write(target_path, "content")

        assert not target_path.with_suffix(".tmp").exists()
        assert not target_path.exists()


class TestResponseParsing:
    """Tests for EC2 response conversion."""

    def test_extracts_first_instance(self) -> None:
        response = {"Reservations": [{"Instances": [{"InstanceId": "i-1"}, {"InstanceId": "i-2"}]}]}

        assert extract_instance_from_response(response) == {"InstanceId": "i-1"}

    @pytest.mark.parametrize(
        "response", [{}, {"Reservations": []}, {"Reservations": [{"Instances": []}]}]
    )
    def test_missing_instance(self, response) -> None:
        assert extract_instance_from_response(response) is None

    def test_parse_instance_falls_back_to_interface_address(self) -> None:
        instance = parse_instance(
            {
                "InstanceId": "i-1",
                "State": {"Name": "pending"},
                "NetworkInterfaces": [{"PrivateIpAddress": "10.0.0.9"}],
                "Tags": [{"Key": "Name", "Value": "web-1"}],
            }
        )

        assert instance.state == "pending"
        assert instance.ip_address == ""
        assert instance.private_ip_address == "10.0.0.9"
        assert instance.tags == {"Name": "web-1"}

    def test_parse_permissions_flattens_ranges(self) -> None:
        permissions = parse_permissions(
            [
                {
                    "IpProtocol": "tcp",
                    "FromPort": 22,
                    "ToPort": 22,
                    "IpRanges": [{"CidrIp": "0.0.0.0/0"}, {"CidrIp": "10.0.0.0/8"}],
                },
                {"IpProtocol": "-1"},
            ]
        )

        assert permissions == [
            IpPermission(protocol="tcp", from_port=22, to_port=22, cidr="0.0.0.0/0"),
            IpPermission(protocol="tcp", from_port=22, to_port=22, cidr="10.0.0.0/8"),
            IpPermission(protocol="-1", from_port=-1, to_port=-1, cidr=""),
        ]

    def test_parse_security_group(self) -> None:
        group = parse_security_group(
            {"GroupId": "sg-1", "GroupName": "docker-machine", "VpcId": "vpc-1"}
        )

        assert group.group_id == "sg-1"
        assert group.permissions == []

    def test_request_shapes(self) -> None:
        assert to_filters({"vpc-id": "vpc-1"}) == [{"Name": "vpc-id", "Values": ["vpc-1"]}]
        assert to_ip_permissions(
            [IpPermission(protocol="tcp", from_port=2376, to_port=2376, cidr="0.0.0.0/0")]
        ) == [
            {
                "IpProtocol": "tcp",
                "FromPort": 2376,
                "ToPort": 2376,
                "IpRanges": [{"CidrIp": "0.0.0.0/0"}],
            }
        ]
