"""AWS-specific constants for the EC2 driver.

This module contains the region table and the fixed values the driver uses
when launching instances and configuring firewall rules.
"""

DEFAULT_REGION = "us-east-1"
"""Region used when none is configured."""

DEFAULT_ZONE = "a"
"""Availability zone letter appended to the region."""

DEFAULT_INSTANCE_TYPE = "t2.micro"
"""Instance type used when none is configured."""

DEFAULT_ROOT_SIZE_GB = 16
"""Root volume size in GB used when none is configured."""

DEFAULT_SECURITY_GROUP_NAME = "docker-machine"
"""Name of the security group shared by machines in a VPC."""

SECURITY_GROUP_DESCRIPTION = "Docker Machine"
"""Description given to security groups created by the driver."""

IP_RANGE = "0.0.0.0/0"
"""Source range of every inbound rule the driver adds."""

ROOT_DEVICE_NAME = "/dev/sda1"
"""Device name of the single root volume."""

ROOT_VOLUME_TYPE = "gp2"
"""General purpose SSD volume type for the root volume."""

REGION_DETAILS = {
    "ap-northeast-1": {"ami_id": "ami-44f1e245"},
    "ap-southeast-1": {"ami_id": "ami-f95875ab"},
    "ap-southeast-2": {"ami_id": "ami-890b62b3"},
    "cn-north-1": {"ami_id": "ami-fe7ae8c7"},
    "eu-west-1": {"ami_id": "ami-823686f5"},
    "eu-central-1": {"ami_id": "ami-ac1524b1"},
    "sa-east-1": {"ami_id": "ami-c770c1da"},
    "us-east-1": {"ami_id": "ami-4ae27e22"},
    "us-west-1": {"ami_id": "ami-d1180894"},
    "us-west-2": {"ami_id": "ami-898dd9b9"},
    "us-gov-west-1": {"ami_id": "ami-cf5630ec"},
}
"""Known regions and their default Ubuntu 14.04 HVM image.

A region missing from this table is rejected during configuration, so an
explicit AMI cannot rescue an unknown region.
"""
