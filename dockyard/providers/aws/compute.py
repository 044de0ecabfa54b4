"""EC2 instance lifecycle management for dockyard machines."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from dockyard.constants import DOCKER_CONFIG_DIR, DRIVER_NAME, LifecycleState
from dockyard.core.interfaces import ProviderGateway
from dockyard.core.models import (
    BlockDeviceMapping,
    Instance,
    InstanceHandle,
    MachineConfig,
    MachineState,
)
from dockyard.core.polling import PollPolicy, poll_until, wait_for_tcp
from dockyard.exceptions import (
    ConflictError,
    DockyardError,
    RemoveError,
    UnknownInstanceError,
)
from dockyard.logging import with_machine_context
from dockyard.providers.aws.constants import ROOT_DEVICE_NAME, ROOT_VOLUME_TYPE
from dockyard.providers.aws.gateway import EC2Gateway
from dockyard.providers.aws.keypair import KeyPairManager
from dockyard.providers.aws.network import NetworkManager
from dockyard.services.bootstrap import RemoteBootstrap, RemoteTarget
from dockyard.services.ssh import build_ssh_command

logger = logging.getLogger(__name__)


class EC2Driver:
    """Drive one EC2 instance through its lifecycle.

    The driver owns the provider gateway and the mutable ``MachineState``;
    the configuration is read-only. All convergence loops follow the
    injected ``PollPolicy``: the default polls forever, a policy with a
    timeout raises ``PollTimeoutError`` from any loop that overruns.

    Parameters
    ----------
    config : MachineConfig
        Resolved machine configuration
    state : MachineState | None
        Persisted runtime state; a fresh record when None
    gateway : ProviderGateway | None
        Provider gateway. If None, an ``EC2Gateway`` is built from ``config``
    remote : RemoteBootstrap | None
        Remote bootstrap service. If None, uses SSH via paramiko
    poll : PollPolicy | None
        Polling intervals and deadline
    boto3_client_factory : Callable[..., Any] | None
        Optional factory passed to the default gateway
    """

    def __init__(
        self,
        config: MachineConfig,
        state: MachineState | None = None,
        gateway: ProviderGateway | None = None,
        remote: RemoteBootstrap | None = None,
        poll: PollPolicy | None = None,
        boto3_client_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config
        self.state = state if state is not None else MachineState()
        self.gateway = gateway or EC2Gateway.from_config(config, boto3_client_factory)
        self.remote = remote or RemoteBootstrap()
        self.poll = poll or PollPolicy()

        self.keypair_manager = KeyPairManager(self.gateway)
        self.network_manager = NetworkManager(
            self.gateway,
            poll_interval=self.poll.security_group_interval,
            timeout=self.poll.timeout,
        )

    @property
    def driver_name(self) -> str:
        return DRIVER_NAME

    @property
    def subnet_id(self) -> str:
        return self.config.subnet_id or self.state.subnet_id

    @property
    def vpc_id(self) -> str:
        return self.config.vpc_id or self.state.vpc_id

    @property
    def instance_id(self) -> str:
        if self.state.instance is None:
            return ""
        return self.state.instance.instance_id

    @property
    def ip_address(self) -> str:
        if self.state.instance is None:
            return ""
        return self.state.instance.ip_address

    def _require_instance_id(self) -> str:
        if not self.instance_id:
            raise UnknownInstanceError()
        return self.instance_id

    @with_machine_context
    def check_prerequisites(self) -> None:
        """Validate that creation can proceed, before any mutating call.

        Raises
        ------
        ConflictError
            If a remote keypair already carries the machine name
        NoSubnetFoundError
            If no subnet id is configured and none matches zone and VPC
        """
        self.keypair_manager.ensure_absent(self.config.machine_name)

        if not self.config.subnet_id:
            self.state.subnet_id = self.network_manager.resolve_subnet(
                self.config.region_zone, self.config.vpc_id
            )

        if not self.vpc_id:
            self.state.vpc_id = self.network_manager.resolve_vpc_for_subnet(
                self.subnet_id
            )

    def pre_create_check(self) -> None:
        self.check_prerequisites()

    @with_machine_context
    def create(self) -> None:
        """Launch the instance and bring it to a reachable, named host.

        Raises
        ------
        ConflictError
            If the machine already has an instance or its keypair name is taken
        NoSubnetFoundError
            If subnet auto-selection finds nothing
        ProviderError
            If any provider call fails
        PollTimeoutError
            If a convergence loop overruns the policy deadline
        RemoteExecutionError
            If the hostname bootstrap fails
        """
        if self.state.instance is not None:
            raise ConflictError(
                f"machine {self.config.machine_name} already has instance "
                f"{self.state.instance.instance_id}"
            )

        self.check_prerequisites()

        logger.info("Launching instance...")

        try:
            self.state.key_pair = self.keypair_manager.create_machine_key_pair(
                self.config.machine_name, self.config.ssh_key_path
            )
        except (DockyardError, OSError) as e:
            logger.error("unable to create key pair: %s", e)
            raise

        self.state.security_group = self.network_manager.ensure_security_group(
            self.config.security_group_name,
            self.vpc_id,
            wants_swarm_port=self.config.swarm_master,
            docker_port=self.config.docker_port,
            swarm_port=self.config.swarm_port,
        )

        block_device = BlockDeviceMapping(
            device_name=ROOT_DEVICE_NAME,
            volume_size=self.config.root_size,
            delete_on_termination=True,
            volume_type=ROOT_VOLUME_TYPE,
        )

        logger.debug("launching instance in subnet %s", self.subnet_id)
        instance = self.gateway.run_instance(
            ami=self.config.ami,
            instance_type=self.config.instance_type,
            zone=self.config.region_zone,
            min_count=1,
            max_count=1,
            security_group_id=self.state.security_group.group_id,
            key_name=self.state.key_pair.key_name,
            subnet_id=self.subnet_id,
            block_device_mapping=block_device,
            iam_profile=self.config.iam_instance_profile,
        )

        self.state.instance = InstanceHandle(
            instance_id=instance.instance_id,
            private_ip_address=instance.private_ip_address,
            state=LifecycleState.from_provider(instance.state),
        )

        logger.debug("waiting for ip address to become available")
        ip_address = poll_until(
            self.get_ip,
            interval=self.poll.ip_interval,
            timeout=self.poll.timeout,
            description=f"public IP of {instance.instance_id}",
        )
        logger.debug("Got the IP Address, it's %r", ip_address)

        self._wait_for_running()

        logger.debug(
            "created instance ID %s, IP address %s, Private IP address %s",
            self.instance_id,
            self.ip_address,
            self.state.instance.private_ip_address,
        )

        logger.info("Waiting for SSH on %s:%d", self.ip_address, self.config.ssh_port)
        wait_for_tcp(
            self.ip_address,
            self.config.ssh_port,
            interval=self.poll.ssh_interval,
            timeout=self.poll.timeout,
        )

        logger.info("Configuring Machine...")

        logger.debug("Setting tags for instance")
        self.gateway.create_tags(self.instance_id, {"Name": self.config.machine_name})

        self.remote.set_hostname(self._remote_target(), self.config.machine_name)

    def _update_handle(self, instance: Instance) -> None:
        handle = self.state.instance
        if handle is None:
            return
        handle.instance_id = instance.instance_id
        handle.ip_address = instance.ip_address
        handle.private_ip_address = instance.private_ip_address or handle.private_ip_address
        handle.state = LifecycleState.from_provider(instance.state)

    def _get_instance(self) -> Instance:
        instance = self.gateway.get_instance(self._require_instance_id())
        self._update_handle(instance)
        return instance

    def _wait_for_running(self) -> None:
        poll_until(
            lambda: self.get_state() == LifecycleState.RUNNING,
            interval=self.poll.state_interval,
            timeout=self.poll.timeout,
            description=f"instance {self.instance_id} to be running",
        )

    def _refresh_instance(self) -> None:
        poll_until(
            lambda: self._get_instance().ip_address,
            interval=self.poll.state_interval,
            timeout=self.poll.timeout,
            description=f"public IP of {self.instance_id}",
        )

    @with_machine_context
    def get_ip(self) -> str:
        """Query the instance's public IP; empty while none is assigned.

        Returns an empty string when the machine has no instance yet.
        """
        if self.state.instance is None:
            return ""
        return self._get_instance().ip_address

    @with_machine_context
    def get_url(self) -> str:
        """Docker endpoint URL, empty until an IP address is known."""
        ip_address = self.get_ip()
        if not ip_address:
            return ""
        return f"tcp://{ip_address}:{self.config.docker_port}"

    @with_machine_context
    def get_state(self) -> LifecycleState:
        """Map the provider's current instance state to a lifecycle state.

        Makes a single provider call. Returns UNKNOWN when the machine has
        no instance yet; provider failures propagate.
        """
        if self.state.instance is None:
            return LifecycleState.UNKNOWN
        instance = self._get_instance()
        return LifecycleState.from_provider(instance.state)

    @with_machine_context
    def start(self) -> None:
        """Start a stopped instance and refresh its addresses."""
        instance_id = self._require_instance_id()
        self.gateway.start_instance(instance_id)

        self._wait_for_running()
        self._refresh_instance()

    @with_machine_context
    def stop(self) -> None:
        self.gateway.stop_instance(self._require_instance_id(), force=False)

    @with_machine_context
    def kill(self) -> None:
        self.gateway.stop_instance(self._require_instance_id(), force=True)

    @with_machine_context
    def restart(self) -> None:
        instance_id = self._require_instance_id()
        try:
            self.gateway.restart_instance(instance_id)
        except DockyardError as e:
            logger.error("unable to restart instance: %s", e)
            raise

    @with_machine_context
    def remove(self) -> None:
        """Terminate the instance and delete the keypair.

        Both steps are attempted even if the first fails. The instance and
        keypair handles are cleared for each step that succeeds.

        Raises
        ------
        UnknownInstanceError
            If there is neither an instance nor a keypair to remove
        RemoveError
            If either step failed; ``errors`` holds the individual causes
        """
        if self.state.instance is None and self.state.key_pair is None:
            raise UnknownInstanceError()

        errors: list[Exception] = []

        try:
            self._terminate()
            self.state.instance = None
        except DockyardError as e:
            logger.error("unable to terminate instance: %s", e)
            errors.append(e)

        if self.state.key_pair is not None:
            try:
                self.keypair_manager.delete_machine_key_pair(self.state.key_pair.key_name)
                self.state.key_pair = None
            except DockyardError as e:
                logger.error("unable to remove key pair: %s", e)
                errors.append(e)

        if errors:
            raise RemoveError(errors)

    def _terminate(self) -> None:
        instance_id = self._require_instance_id()
        logger.debug("terminating instance: %s", instance_id)
        self.gateway.terminate_instance(instance_id)

    def _remote_target(self) -> RemoteTarget:
        return RemoteTarget(
            host=self.ip_address,
            port=self.config.ssh_port,
            user=self.config.ssh_user,
            key_path=self.config.ssh_key_path,
        )

    @with_machine_context
    def start_docker(self) -> None:
        self.remote.start_docker(self._remote_target())

    @with_machine_context
    def stop_docker(self) -> None:
        self.remote.stop_docker(self._remote_target())

    @with_machine_context
    def upgrade(self) -> None:
        self.remote.upgrade_docker(self._remote_target())

    def get_docker_config_dir(self) -> str:
        return DOCKER_CONFIG_DIR

    def get_ssh_command(self, *args: str) -> list[str]:
        """Build an ``ssh`` argv that logs into the machine."""
        return build_ssh_command(
            self.ip_address,
            self.config.ssh_port,
            self.config.ssh_user,
            self.config.ssh_key_path,
            *args,
        )
