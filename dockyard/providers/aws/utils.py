"""Helpers for converting EC2 API responses into dockyard records."""

from __future__ import annotations

from typing import Any

from dockyard.core.models import Instance, IpPermission, SecurityGroup, Subnet


def extract_instance_from_response(response: dict[str, Any]) -> dict[str, Any] | None:
    """Extract first instance from a describe_instances response.

    Parameters
    ----------
    response : dict[str, Any]
        Response from boto3 describe_instances call

    Returns
    -------
    dict[str, Any] | None
        The first instance dictionary, or None if the response has none
    """
    reservations = response.get("Reservations") or []
    if not reservations or not reservations[0].get("Instances"):
        return None
    return reservations[0]["Instances"][0]


def parse_instance(data: dict[str, Any]) -> Instance:
    """Build an ``Instance`` from a boto3 instance description.

    The private address falls back to the first network interface because
    run_instances responses do not always carry the top-level field.
    """
    private_ip = data.get("PrivateIpAddress") or ""
    interfaces = data.get("NetworkInterfaces") or []
    if not private_ip and interfaces:
        private_ip = interfaces[0].get("PrivateIpAddress", "")

    return Instance(
        instance_id=data["InstanceId"],
        state=data.get("State", {}).get("Name", ""),
        ip_address=data.get("PublicIpAddress") or "",
        private_ip_address=private_ip,
        tags={tag["Key"]: tag["Value"] for tag in data.get("Tags", [])},
    )


def parse_permissions(raw_permissions: list[dict[str, Any]]) -> list[IpPermission]:
    """Flatten EC2 IpPermissions into one record per source range."""
    permissions = []

    for raw in raw_permissions:
        protocol = raw.get("IpProtocol", "")
        from_port = raw.get("FromPort", -1)
        to_port = raw.get("ToPort", -1)
        ranges = [r.get("CidrIp", "") for r in raw.get("IpRanges", [])] or [""]

        for cidr in ranges:
            permissions.append(
                IpPermission(
                    protocol=protocol, from_port=from_port, to_port=to_port, cidr=cidr
                )
            )

    return permissions


def parse_security_group(data: dict[str, Any]) -> SecurityGroup:
    return SecurityGroup(
        group_id=data["GroupId"],
        group_name=data.get("GroupName", ""),
        vpc_id=data.get("VpcId", ""),
        permissions=parse_permissions(data.get("IpPermissions", [])),
    )


def parse_subnet(data: dict[str, Any]) -> Subnet:
    return Subnet(
        subnet_id=data["SubnetId"],
        vpc_id=data.get("VpcId", ""),
        availability_zone=data.get("AvailabilityZone", ""),
        default_for_az=bool(data.get("DefaultForAz", False)),
    )


def to_ip_permissions(permissions: list[IpPermission]) -> list[dict[str, Any]]:
    """Render permission records in the shape authorize calls expect."""
    return [
        {
            "IpProtocol": p.protocol,
            "FromPort": p.from_port,
            "ToPort": p.to_port,
            "IpRanges": [{"CidrIp": p.cidr}],
        }
        for p in permissions
    ]


def to_filters(filters: dict[str, str]) -> list[dict[str, Any]]:
    """Render ``{name: value}`` pairs as EC2 API filters."""
    return [{"Name": name, "Values": [value]} for name, value in filters.items()]


def get_aws_credentials_error_message() -> str:
    """Get standard AWS credentials error message."""
    return (
        "AWS credentials not found\n\n"
        "Pass them as options:\n"
        "  dockyard create NAME --amazonec2-access-key=... --amazonec2-secret-key=...\n\n"
        "Or set environment variables:\n"
        "  export AWS_ACCESS_KEY_ID=...\n"
        "  export AWS_SECRET_ACCESS_KEY=..."
    )
