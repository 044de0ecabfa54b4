"""EC2 API gateway used by the driver and its managers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import boto3

from dockyard.core.models import (
    BlockDeviceMapping,
    Instance,
    IpPermission,
    KeyPairInfo,
    SecurityGroup,
    Subnet,
)
from dockyard.exceptions import UnknownInstanceError
from dockyard.providers.aws.errors import handle_aws_errors
from dockyard.providers.aws.utils import (
    extract_instance_from_response,
    parse_instance,
    parse_security_group,
    parse_subnet,
    to_filters,
    to_ip_permissions,
)
from dockyard.providers.exceptions import ProviderAPIError

if TYPE_CHECKING:
    from dockyard.core.models import MachineConfig

logger = logging.getLogger(__name__)


class EC2Gateway:
    """Thin adapter over one credential-bound boto3 EC2 client.

    The client is built once and reused for every call. All botocore
    exceptions are translated to ``dockyard.providers.exceptions`` types.

    Parameters
    ----------
    region : str
        AWS region for EC2 operations
    access_key : str | None
        AWS access key id; None defers to the boto3 credential chain
    secret_key : str | None
        AWS secret access key
    session_token : str | None
        Optional STS session token
    boto3_client_factory : Callable[..., Any] | None
        Optional factory for creating boto3 clients. If None, uses boto3.client
    """

    def __init__(
        self,
        region: str,
        access_key: str | None = None,
        secret_key: str | None = None,
        session_token: str | None = None,
        boto3_client_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.region = region
        self.boto3_client_factory = boto3_client_factory or boto3.client
        self.ec2_client = self.boto3_client_factory(
            "ec2",
            region_name=region,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            aws_session_token=session_token or None,
        )

    @classmethod
    def from_config(
        cls,
        config: MachineConfig,
        boto3_client_factory: Callable[..., Any] | None = None,
    ) -> EC2Gateway:
        """Create a gateway from a resolved machine configuration."""
        return cls(
            region=config.region,
            access_key=config.access_key,
            secret_key=config.secret_key,
            session_token=config.session_token,
            boto3_client_factory=boto3_client_factory,
        )

    def get_key_pair(self, name: str) -> KeyPairInfo | None:
        """Look up a remote keypair by name.

        Returns
        -------
        KeyPairInfo | None
            The keypair, or None if no keypair has that name
        """
        try:
            with handle_aws_errors("GetKeyPair"):
                response = self.ec2_client.describe_key_pairs(KeyNames=[name])
        except ProviderAPIError as e:
            if e.error_code == "InvalidKeyPair.NotFound":
                return None
            raise

        for key in response.get("KeyPairs", []):
            if key.get("KeyName") == name:
                return KeyPairInfo(
                    key_name=key["KeyName"], fingerprint=key.get("KeyFingerprint", "")
                )

        return None

    def import_key_pair(self, name: str, public_key: bytes) -> None:
        with handle_aws_errors("ImportKeyPair"):
            self.ec2_client.import_key_pair(KeyName=name, PublicKeyMaterial=public_key)

    def delete_key_pair(self, name: str) -> None:
        with handle_aws_errors("DeleteKeyPair"):
            self.ec2_client.delete_key_pair(KeyName=name)

    def get_subnets(self, filters: dict[str, str]) -> list[Subnet]:
        """List subnets matching all ``{filter name: value}`` pairs, in API order."""
        with handle_aws_errors("GetSubnets"):
            response = self.ec2_client.describe_subnets(Filters=to_filters(filters))

        return [parse_subnet(s) for s in response.get("Subnets", [])]

    def get_security_groups(self, vpc_id: str | None = None) -> list[SecurityGroup]:
        """List security groups, restricted to one VPC when given."""
        kwargs: dict[str, Any] = {}
        if vpc_id:
            kwargs["Filters"] = to_filters({"vpc-id": vpc_id})

        with handle_aws_errors("GetSecurityGroups"):
            paginator = self.ec2_client.get_paginator("describe_security_groups")
            groups = [
                parse_security_group(group)
                for page in paginator.paginate(**kwargs)
                for group in page.get("SecurityGroups", [])
            ]

        return groups

    def get_security_group_by_id(self, group_id: str) -> SecurityGroup:
        """Describe one security group.

        Raises
        ------
        ProviderAPIError
            With code ``InvalidGroup.NotFound`` while the group is not yet
            visible
        """
        with handle_aws_errors("GetSecurityGroupById"):
            response = self.ec2_client.describe_security_groups(GroupIds=[group_id])

        groups = response.get("SecurityGroups", [])
        if not groups:
            raise ProviderAPIError(
                f"GetSecurityGroupById: security group {group_id} not found",
                error_code="InvalidGroup.NotFound",
                operation="GetSecurityGroupById",
            )

        return parse_security_group(groups[0])

    def create_security_group(
        self, name: str, description: str, vpc_id: str
    ) -> SecurityGroup:
        kwargs: dict[str, Any] = {"GroupName": name, "Description": description}
        if vpc_id:
            kwargs["VpcId"] = vpc_id

        with handle_aws_errors("CreateSecurityGroup"):
            response = self.ec2_client.create_security_group(**kwargs)

        return SecurityGroup(group_id=response["GroupId"], group_name=name, vpc_id=vpc_id)

    def authorize_security_group(
        self, group_id: str, permissions: list[IpPermission]
    ) -> None:
        with handle_aws_errors("AuthorizeSecurityGroup"):
            self.ec2_client.authorize_security_group_ingress(
                GroupId=group_id, IpPermissions=to_ip_permissions(permissions)
            )

    def delete_security_group(self, group_id: str) -> None:
        with handle_aws_errors("DeleteSecurityGroup"):
            self.ec2_client.delete_security_group(GroupId=group_id)

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
    ) -> Instance:
        """Launch instances and return the first one.

        The instance gets a public address through its primary network
        interface, which is placed in ``subnet_id`` with the given group.
        """
        kwargs: dict[str, Any] = {
            "ImageId": ami,
            "InstanceType": instance_type,
            "MinCount": min_count,
            "MaxCount": max_count,
            "KeyName": key_name,
            "Placement": {"AvailabilityZone": zone},
            "NetworkInterfaces": [
                {
                    "DeviceIndex": 0,
                    "SubnetId": subnet_id,
                    "Groups": [security_group_id],
                    "AssociatePublicIpAddress": True,
                }
            ],
            "BlockDeviceMappings": [
                {
                    "DeviceName": block_device_mapping.device_name,
                    "Ebs": {
                        "VolumeSize": block_device_mapping.volume_size,
                        "VolumeType": block_device_mapping.volume_type,
                        "DeleteOnTermination": block_device_mapping.delete_on_termination,
                    },
                }
            ],
        }
        if iam_profile:
            kwargs["IamInstanceProfile"] = {"Name": iam_profile}

        with handle_aws_errors("RunInstance"):
            response = self.ec2_client.run_instances(**kwargs)

        return parse_instance(response["Instances"][0])

    def get_instance(self, instance_id: str) -> Instance:
        """Describe one instance.

        Raises
        ------
        UnknownInstanceError
            If the provider does not know the instance id
        """
        try:
            with handle_aws_errors("GetInstance"):
                response = self.ec2_client.describe_instances(InstanceIds=[instance_id])
        except ProviderAPIError as e:
            if e.error_code in ("InvalidInstanceID.NotFound", "InvalidInstanceID.Malformed"):
                raise UnknownInstanceError(instance_id) from e
            raise

        data = extract_instance_from_response(response)
        if data is None:
            raise UnknownInstanceError(instance_id)

        return parse_instance(data)

    def start_instance(self, instance_id: str) -> None:
        with handle_aws_errors("StartInstance"):
            self.ec2_client.start_instances(InstanceIds=[instance_id])

    def stop_instance(self, instance_id: str, force: bool = False) -> None:
        with handle_aws_errors("StopInstance"):
            self.ec2_client.stop_instances(InstanceIds=[instance_id], Force=force)

    def restart_instance(self, instance_id: str) -> None:
        with handle_aws_errors("RestartInstance"):
            self.ec2_client.reboot_instances(InstanceIds=[instance_id])

    def terminate_instance(self, instance_id: str) -> None:
        with handle_aws_errors("TerminateInstance"):
            self.ec2_client.terminate_instances(InstanceIds=[instance_id])

    def create_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        with handle_aws_errors("CreateTags"):
            self.ec2_client.create_tags(
                Resources=[resource_id],
                Tags=[{"Key": key, "Value": value} for key, value in tags.items()],
            )
