"""Network placement and security group management for EC2 machines."""

import logging

from dockyard.constants import SECURITY_GROUP_POLL_INTERVAL_SECONDS, SSH_PORT
from dockyard.core.interfaces import ProviderGateway
from dockyard.core.models import IpPermission, SecurityGroup, SecurityGroupHandle
from dockyard.core.polling import poll_until
from dockyard.exceptions import NoSubnetFoundError, NotFoundError
from dockyard.providers.aws.constants import IP_RANGE, SECURITY_GROUP_DESCRIPTION
from dockyard.providers.exceptions import ProviderError

logger = logging.getLogger(__name__)


class NetworkManager:
    """Manage EC2 network resources (subnets, security groups).

    Parameters
    ----------
    gateway : ProviderGateway
        Provider gateway used for all API calls
    poll_interval : float
        Seconds between lookups of a freshly created security group
    timeout : float | None
        Deadline for that lookup loop; None waits forever
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        poll_interval: float = SECURITY_GROUP_POLL_INTERVAL_SECONDS,
        timeout: float | None = None,
    ) -> None:
        self.gateway = gateway
        self.poll_interval = poll_interval
        self.timeout = timeout

    def resolve_subnet(self, region_zone: str, vpc_id: str) -> str:
        """Pick a subnet in the given zone and VPC.

        When several subnets match, the one flagged as default for the zone
        wins; otherwise the first subnet in the provider's list order is used,
        so the result depends on the order the API returns.

        Parameters
        ----------
        region_zone : str
            Availability zone, e.g. ``us-east-1a``
        vpc_id : str
            VPC the subnet must belong to

        Returns
        -------
        str
            Selected subnet id

        Raises
        ------
        NoSubnetFoundError
            If no subnet matches
        """
        subnets = self.gateway.get_subnets(
            {"availabilityZone": region_zone, "vpc-id": vpc_id}
        )

        if not subnets:
            raise NoSubnetFoundError(region_zone, vpc_id)

        selected = subnets[0]

        if len(subnets) > 1:
            for subnet in subnets:
                if subnet.default_for_az:
                    selected = subnet
                    break

        logger.debug("selected subnet %s in %s", selected.subnet_id, region_zone)
        return selected.subnet_id

    def resolve_vpc_for_subnet(self, subnet_id: str) -> str:
        """Return the VPC that owns ``subnet_id``.

        Raises
        ------
        NotFoundError
            If the subnet does not exist
        """
        subnets = self.gateway.get_subnets({"subnet-id": subnet_id})

        if not subnets:
            raise NotFoundError(f"unable to find subnet: {subnet_id}")

        return subnets[0].vpc_id

    def ensure_security_group(
        self,
        group_name: str,
        vpc_id: str,
        wants_swarm_port: bool,
        docker_port: int,
        swarm_port: int,
    ) -> SecurityGroupHandle:
        """Find or create the named group and open the ports it lacks.

        Parameters
        ----------
        group_name : str
            Exact group name to look up in the VPC
        vpc_id : str
            VPC that owns the group
        wants_swarm_port : bool
            Whether the Swarm manager port must be opened
        docker_port : int
            Docker daemon port
        swarm_port : int
            Swarm manager port

        Returns
        -------
        SecurityGroupHandle
            Handle of the existing or created group

        Raises
        ------
        ProviderError
            If any provider call fails; nothing is rolled back
        PollTimeoutError
            If the created group does not become visible before the deadline
        """
        logger.debug("configuring security group in %s", vpc_id)

        group = self._find_group(group_name, vpc_id)

        if group is None:
            group = self._create_group(group_name, vpc_id)

        permissions = self.compute_permission_delta(
            group, docker_port, swarm_port, wants_swarm_port
        )

        if permissions:
            logger.debug(
                "authorizing group %s with permissions: %s", group.group_name, permissions
            )
            self.gateway.authorize_security_group(group.group_id, permissions)

        return SecurityGroupHandle(group_id=group.group_id, group_name=group.group_name)

    def _find_group(self, group_name: str, vpc_id: str) -> SecurityGroup | None:
        for group in self.gateway.get_security_groups(vpc_id):
            if group.group_name == group_name:
                logger.debug("found existing security group (%s) in %s", group_name, vpc_id)
                return group
        return None

    def _create_group(self, group_name: str, vpc_id: str) -> SecurityGroup:
        logger.debug("creating security group (%s) in %s", group_name, vpc_id)
        created = self.gateway.create_security_group(
            group_name, SECURITY_GROUP_DESCRIPTION, vpc_id
        )

        logger.debug("waiting for group (%s) to become available", created.group_id)
        return poll_until(
            lambda: self.gateway.get_security_group_by_id(created.group_id),
            interval=self.poll_interval,
            timeout=self.timeout,
            description=f"security group {created.group_id}",
            retry_on=(ProviderError,),
        )

    def compute_permission_delta(
        self,
        group: SecurityGroup,
        docker_port: int,
        swarm_port: int,
        wants_swarm_port: bool,
    ) -> list[IpPermission]:
        """List the inbound rules the group still needs.

        A port counts as open when any existing rule starts at that port.
        """
        existing_ports = {p.from_port for p in group.permissions}

        wanted = [SSH_PORT, docker_port]
        if wants_swarm_port:
            wanted.append(swarm_port)

        missing = []
        for port in wanted:
            if port in existing_ports or port in missing:
                continue
            missing.append(port)

        logger.debug("configuring security group authorization for %s", IP_RANGE)

        return [
            IpPermission(protocol="tcp", from_port=port, to_port=port, cidr=IP_RANGE)
            for port in missing
        ]

    def delete_security_group(self, group_id: str) -> None:
        """Delete a security group by id."""
        logger.debug("deleting security group %s", group_id)
        self.gateway.delete_security_group(group_id)
