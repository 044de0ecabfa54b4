"""Machine option loading and resolution."""

from __future__ import annotations

import logging
import os
import secrets
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import OmegaConfBaseException

from dockyard.constants import DEFAULT_DOCKER_PORT, DEFAULT_SWARM_PORT
from dockyard.core.models import MachineConfig
from dockyard.exceptions import ConfigurationError, InvalidRegionError
from dockyard.providers.aws.constants import (
    DEFAULT_INSTANCE_TYPE,
    DEFAULT_REGION,
    DEFAULT_ROOT_SIZE_GB,
    DEFAULT_SECURITY_GROUP_NAME,
    DEFAULT_ZONE,
    REGION_DETAILS,
)

logger = logging.getLogger(__name__)

ACCESS_KEY = "amazonec2-access-key"
SECRET_KEY = "amazonec2-secret-key"
SESSION_TOKEN = "amazonec2-session-token"
AMI = "amazonec2-ami"
REGION = "amazonec2-region"
VPC_ID = "amazonec2-vpc-id"
ZONE = "amazonec2-zone"
SUBNET_ID = "amazonec2-subnet-id"
SECURITY_GROUP = "amazonec2-security-group"
INSTANCE_TYPE = "amazonec2-instance-type"
ROOT_SIZE = "amazonec2-root-size"
IAM_INSTANCE_PROFILE = "amazonec2-iam-instance-profile"
SWARM_MASTER = "swarm-master"
SWARM_HOST = "swarm-host"
SWARM_DISCOVERY = "swarm-discovery"

OPTION_NAMES = (
    ACCESS_KEY,
    SECRET_KEY,
    SESSION_TOKEN,
    AMI,
    REGION,
    VPC_ID,
    ZONE,
    SUBNET_ID,
    SECURITY_GROUP,
    INSTANCE_TYPE,
    ROOT_SIZE,
    IAM_INSTANCE_PROFILE,
    SWARM_MASTER,
    SWARM_HOST,
    SWARM_DISCOVERY,
)

OPTION_DEFAULTS: dict[str, Any] = {
    REGION: DEFAULT_REGION,
    ZONE: DEFAULT_ZONE,
    SECURITY_GROUP: DEFAULT_SECURITY_GROUP_NAME,
    INSTANCE_TYPE: DEFAULT_INSTANCE_TYPE,
    ROOT_SIZE: DEFAULT_ROOT_SIZE_GB,
}

ENVIRONMENT_FALLBACKS = {
    ACCESS_KEY: "AWS_ACCESS_KEY_ID",
    SECRET_KEY: "AWS_SECRET_ACCESS_KEY",
    SESSION_TOKEN: "AWS_SESSION_TOKEN",
    AMI: "AWS_AMI",
    REGION: "AWS_DEFAULT_REGION",
    VPC_ID: "AWS_VPC_ID",
    ZONE: "AWS_ZONE",
    SUBNET_ID: "AWS_SUBNET_ID",
    SECURITY_GROUP: "AWS_SECURITY_GROUP",
    INSTANCE_TYPE: "AWS_INSTANCE_TYPE",
    ROOT_SIZE: "AWS_ROOT_SIZE",
}


def generate_machine_id() -> str:
    """Generate a random 128-bit machine id rendered as 32 hex characters."""
    return secrets.token_hex(16)


def normalize_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize option keys to their dashed form.

    ``amazonec2_access_key`` (as produced by keyword arguments) and
    ``amazonec2-access-key`` name the same option. Entries whose value is
    None are dropped so that defaults and environment fallbacks apply.
    """
    return {
        str(key).replace("_", "-"): value
        for key, value in options.items()
        if value is not None
    }


class ConfigLoader:
    """Load machine options from YAML and the environment."""

    def load_options(self, options_path: str | None = None) -> dict[str, Any]:
        """Load options from a YAML file.

        Parameters
        ----------
        options_path : str | None
            Path to the YAML file. If None, checks DOCKYARD_OPTIONS env var.
            Returns an empty mapping when no file is configured or it does
            not exist.

        Returns
        -------
        dict[str, Any]
            Normalized options with interpolations resolved

        Raises
        ------
        ConfigurationError
            If the file is not valid YAML, is not a mapping, or references
            undefined variables
        """
        if options_path is None:
            options_path = os.environ.get("DOCKYARD_OPTIONS")

        if not options_path:
            return {}

        options_file = Path(options_path).expanduser()

        if not options_file.exists():
            logger.debug("options file %s not found, using defaults", options_file)
            return {}

        try:
            cfg = OmegaConf.load(options_file)
            loaded = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML options file %s: %s", options_file, e)
            raise ConfigurationError(
                "options-file", f"Invalid YAML in {options_file}: {e}"
            ) from e
        except OmegaConfBaseException as e:
            logger.error("Failed to resolve options in %s: %s", options_file, e)
            raise ConfigurationError(
                "options-file", f"Option resolution error in {options_file}: {e}"
            ) from e

        if loaded is None:
            return {}

        if not isinstance(loaded, dict):
            raise ConfigurationError(
                "options-file", f"{options_file} must contain a mapping of options"
            )

        return normalize_options(loaded)

    def merge_options(
        self,
        file_options: Mapping[str, Any],
        cli_options: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Overlay command line options on file options."""
        merged = normalize_options(file_options)
        merged.update(normalize_options(cli_options))
        return merged


def _lookup(
    options: Mapping[str, Any], environ: Mapping[str, str], name: str
) -> Any:
    if name in options and options[name] != "":
        return options[name]

    env_name = ENVIRONMENT_FALLBACKS.get(name)
    if env_name and environ.get(env_name):
        return environ[env_name]

    return OPTION_DEFAULTS.get(name, "")


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value in ("", None):
        return False
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(name, f"{name} must be a boolean, got {value!r}")


def _as_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(name, f"{name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(name, f"{name} must be an integer, got {value!r}") from e
    if number <= 0:
        raise ConfigurationError(name, f"{name} must be greater than zero")
    return number


def validate_region(region: str) -> str:
    """Return ``region`` if it is in the region table.

    Raises
    ------
    InvalidRegionError
        If the region is unknown
    """
    if region not in REGION_DETAILS:
        raise InvalidRegionError(region)
    return region


def parse_swarm_port(swarm_host: str) -> int:
    """Extract the port of a swarm host URL such as ``tcp://0.0.0.0:3376``.

    Raises
    ------
    ConfigurationError
        If the value has no parseable port
    """
    try:
        port = urlparse(swarm_host).port
    except ValueError as e:
        raise ConfigurationError(
            SWARM_HOST, f"error parsing swarm host {swarm_host!r}: {e}"
        ) from e

    if port is None:
        raise ConfigurationError(
            SWARM_HOST, f"error parsing swarm host {swarm_host!r}: no port given"
        )

    return port


def resolve_config(
    options: Mapping[str, Any],
    machine_name: str,
    store_path: str = "",
    ca_cert_path: str = "",
    private_key_path: str = "",
    machine_id: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> MachineConfig:
    """Validate raw options and produce an immutable machine configuration.

    Validation order: region, AMI default, credentials, network placement,
    swarm host, instance shape. No provider call is made.

    Parameters
    ----------
    options : Mapping[str, Any]
        Raw options keyed by orchestrator option name
    machine_name : str
        Name of the machine; also used as keypair name and hostname
    store_path : str
        Directory holding the machine's local files
    ca_cert_path : str
        Path of the orchestrator CA certificate
    private_key_path : str
        Path of the orchestrator CA private key
    machine_id : str | None
        Correlation id; a new one is generated when None
    environ : Mapping[str, str] | None
        Environment used for fallbacks (default: ``os.environ``)

    Returns
    -------
    MachineConfig
        Resolved configuration

    Raises
    ------
    InvalidRegionError
        If the region is not in the region table
    ConfigurationError
        If any other option is missing or invalid
    """
    if not machine_name:
        raise ConfigurationError("machine-name", "machine name is required")

    environ = os.environ if environ is None else environ
    options = normalize_options(options)

    region = validate_region(str(_lookup(options, environ, REGION)))

    ami = str(_lookup(options, environ, AMI))
    if not ami:
        ami = REGION_DETAILS[region]["ami_id"]

    access_key = str(_lookup(options, environ, ACCESS_KEY))
    secret_key = str(_lookup(options, environ, SECRET_KEY))

    if not access_key:
        raise ConfigurationError(
            ACCESS_KEY, f"amazonec2 driver requires the --{ACCESS_KEY} option"
        )

    if not secret_key:
        raise ConfigurationError(
            SECRET_KEY, f"amazonec2 driver requires the --{SECRET_KEY} option"
        )

    subnet_id = str(_lookup(options, environ, SUBNET_ID))
    vpc_id = str(_lookup(options, environ, VPC_ID))

    if not subnet_id and not vpc_id:
        raise ConfigurationError(
            SUBNET_ID,
            f"amazonec2 driver requires either the --{SUBNET_ID} or --{VPC_ID} option",
        )

    if subnet_id and vpc_id:
        logger.debug("both subnet %s and vpc %s given, subnet wins", subnet_id, vpc_id)

    swarm_master = _as_bool(SWARM_MASTER, options.get(SWARM_MASTER, False))
    swarm_host = str(options.get(SWARM_HOST, ""))
    swarm_port = DEFAULT_SWARM_PORT

    if swarm_master:
        swarm_port = parse_swarm_port(swarm_host)

    instance_type = str(_lookup(options, environ, INSTANCE_TYPE))
    if not instance_type:
        raise ConfigurationError(INSTANCE_TYPE, "instance type is required")

    root_size = _as_positive_int(ROOT_SIZE, _lookup(options, environ, ROOT_SIZE))

    return MachineConfig(
        machine_name=machine_name,
        machine_id=machine_id or generate_machine_id(),
        access_key=access_key,
        secret_key=secret_key,
        session_token=str(_lookup(options, environ, SESSION_TOKEN)),
        region=region,
        ami=ami,
        zone=str(_lookup(options, environ, ZONE)),
        vpc_id=vpc_id,
        subnet_id=subnet_id,
        instance_type=instance_type,
        root_size=root_size,
        iam_instance_profile=str(_lookup(options, environ, IAM_INSTANCE_PROFILE)),
        security_group_name=str(_lookup(options, environ, SECURITY_GROUP)),
        swarm_master=swarm_master,
        swarm_host=swarm_host,
        swarm_discovery=str(options.get(SWARM_DISCOVERY, "")),
        docker_port=DEFAULT_DOCKER_PORT,
        swarm_port=swarm_port,
        store_path=store_path,
        ca_cert_path=ca_cert_path,
        private_key_path=private_key_path,
    )
