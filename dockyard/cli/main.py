"""CLI entry point for dockyard."""

from __future__ import annotations

import logging
import os
import shlex
import sys
from collections.abc import Callable
from typing import Any

import fire
import paramiko

from dockyard.constants import (
    DRIVER_NAME,
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    LifecycleState,
)
from dockyard.core.config import ConfigLoader, resolve_config
from dockyard.core.models import MachineConfig, MachineState
from dockyard.core.store import MachineStore
from dockyard.exceptions import (
    ConflictError,
    DockyardError,
    NotFoundError,
    RemoveError,
)
from dockyard.logging import MachineContextFilter, MachineFormatter
from dockyard.providers import (
    ProviderAPIError,
    ProviderCredentialsError,
    ProviderError,
    get_driver,
)
from dockyard.providers.aws.compute import EC2Driver
from dockyard.providers.aws.utils import get_aws_credentials_error_message

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "paramiko")

MASKED_FIELDS = ("secret_key", "session_token")


def create_driver(config: MachineConfig, state: MachineState) -> EC2Driver:
    """Build the registered driver for a stored machine."""
    driver_class = get_driver(DRIVER_NAME)
    return driver_class(config, state)


class DockyardCLI:
    """Create and manage Docker hosts on Amazon EC2.

    Every command loads the machine record from the store, runs one driver
    operation and writes the updated state back.

    Parameters
    ----------
    store : MachineStore | None
        Machine store. If None, uses the directory named by DOCKYARD_STORE
    driver_factory : Callable[[MachineConfig, MachineState], EC2Driver] | None
        Optional factory for drivers (default: the registered EC2 driver)
    config_loader : ConfigLoader | None
        Loader for YAML options files
    """

    def __init__(
        self,
        store: MachineStore | None = None,
        driver_factory: Callable[[MachineConfig, MachineState], EC2Driver] | None = None,
        config_loader: ConfigLoader | None = None,
    ) -> None:
        self._store = store or MachineStore()
        self._driver_factory = driver_factory or create_driver
        self._config_loader = config_loader or ConfigLoader()

    def _load_driver(self, name: str) -> EC2Driver:
        config, state = self._store.load(name)
        return self._driver_factory(config, state)

    def _save(self, driver: EC2Driver) -> None:
        self._store.save(driver.config, driver.state)

    def create(self, name: str, options_file: str | None = None, **options: Any) -> str:
        """Create a machine and return its Docker URL.

        Parameters
        ----------
        name : str
            Machine name; also the keypair name and the remote hostname
        options_file : str | None
            YAML file with ``amazonec2-*`` options. If None, checks
            DOCKYARD_OPTIONS env var
        **options : Any
            ``--amazonec2-*`` and ``--swarm-*`` options; these override the file

        Returns
        -------
        str
            Docker URL of the machine
        """
        if self._store.exists(name):
            raise ConflictError(f"machine {name} already exists")

        file_options = self._config_loader.load_options(options_file)
        merged = self._config_loader.merge_options(file_options, options)

        config = resolve_config(
            merged, machine_name=name, store_path=str(self._store.machine_dir(name))
        )
        driver = self._driver_factory(config, MachineState())

        self._store.save(config, driver.state)

        try:
            driver.create()
        finally:
            self._save(driver)

        logger.info("Machine %s is running", name)
        return driver.get_url()

    def start(self, name: str) -> None:
        """Start a stopped machine."""
        driver = self._load_driver(name)
        try:
            driver.start()
        finally:
            self._save(driver)

    def stop(self, name: str) -> None:
        """Stop a machine gracefully."""
        driver = self._load_driver(name)
        driver.stop()
        self._save(driver)

    def kill(self, name: str) -> None:
        """Force-stop a machine."""
        driver = self._load_driver(name)
        driver.kill()
        self._save(driver)

    def restart(self, name: str) -> None:
        """Reboot a machine."""
        driver = self._load_driver(name)
        driver.restart()
        self._save(driver)

    def rm(self, name: str, force: bool = False) -> None:
        """Remove a machine's instance, keypair and local record.

        Parameters
        ----------
        name : str
            Machine name
        force : bool
            Delete the local record even if remote cleanup failed
        """
        driver = self._load_driver(name)

        if driver.state.instance is None and driver.state.key_pair is None:
            logger.debug("machine %s has no remote resources", name)
            self._store.remove(name)
            return

        try:
            driver.remove()
        except RemoveError as e:
            self._save(driver)
            if not force:
                raise
            logger.warning("Removing %s locally despite errors: %s", name, e)

        self._store.remove(name)

    def status(self, name: str) -> str:
        """Print the lifecycle state; provider failures report ``Error``."""
        driver = self._load_driver(name)
        try:
            state = driver.get_state()
        except (ProviderError, NotFoundError) as e:
            logger.debug("unable to query state of %s: %s", name, e)
            return LifecycleState.ERROR.value
        self._save(driver)
        return state.value

    def ip(self, name: str) -> str:
        driver = self._load_driver(name)
        ip_address = driver.get_ip()
        self._save(driver)
        return ip_address

    def url(self, name: str) -> str:
        driver = self._load_driver(name)
        url = driver.get_url()
        self._save(driver)
        return url

    def upgrade(self, name: str) -> None:
        """Upgrade Docker on the machine."""
        self._load_driver(name).upgrade()

    def inspect(self, name: str) -> dict[str, Any]:
        """Show the stored configuration and state, secrets masked."""
        driver = self._load_driver(name)
        config = driver.config.to_dict()
        for field_name in MASKED_FIELDS:
            if config.get(field_name):
                config[field_name] = "****"
        return {
            "driver": driver.driver_name,
            "config": config,
            "state": driver.state.to_dict(),
        }

    def ssh_command(self, name: str, *args: str) -> str:
        """Print an ``ssh`` command line that logs into the machine."""
        driver = self._load_driver(name)
        return shlex.join(driver.get_ssh_command(*args))

    def ls(self) -> list[str]:
        """List stored machine names."""
        return self._store.list_names()


def handle_credentials_error(debug_mode: bool) -> None:
    """Handle provider credentials error.

    Raises
    ------
    ProviderCredentialsError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(get_aws_credentials_error_message(), file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_value_error(error: ValueError, debug_mode: bool) -> None:
    if debug_mode:
        raise

    print(f"Configuration error: {error}", file=sys.stderr)
    sys.exit(EXIT_CONFIG_ERROR)


def handle_api_error(error: ProviderAPIError, debug_mode: bool) -> None:
    """Handle provider API error with context-specific messages.

    Parameters
    ----------
    error : ProviderAPIError
        The API error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ProviderAPIError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    error_code = error.error_code

    if error_code == "UnauthorizedOperation":
        print("Insufficient IAM permissions\n", file=sys.stderr)
        print("Your AWS credentials need permission for:", file=sys.stderr)
        print(
            "  - Instances (RunInstances, DescribeInstances, TerminateInstances)",
            file=sys.stderr,
        )
        print("  - Key pairs (ImportKeyPair, DeleteKeyPair, DescribeKeyPairs)", file=sys.stderr)
        print("  - Security groups and subnets", file=sys.stderr)
    elif error_code in ["InvalidAMIID.NotFound", "InvalidAMIID.Malformed"]:
        print("AMI not found\n", file=sys.stderr)
        print("Fix it:", file=sys.stderr)
        print("  dockyard create NAME --amazonec2-ami ami-...", file=sys.stderr)
    elif error_code in ["InstanceLimitExceeded", "RequestLimitExceeded"]:
        print("AWS quota exceeded\n", file=sys.stderr)
        print("  https://console.aws.amazon.com/servicequotas/", file=sys.stderr)
    elif error_code in ["ExpiredToken", "RequestExpired", "ExpiredTokenException"]:
        print("AWS credentials have expired\n", file=sys.stderr)
        print("Refresh --amazonec2-session-token and try again.", file=sys.stderr)
    else:
        print(f"AWS API error: {error}", file=sys.stderr)

    sys.exit(EXIT_ERROR)


def handle_remove_error(error: RemoveError, debug_mode: bool) -> None:
    if debug_mode:
        raise

    print("Machine removal was incomplete:", file=sys.stderr)
    for cause in error.errors:
        print(f"  - {cause}", file=sys.stderr)
    print("\nRun the command again, or use --force to drop the local record.", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_dockyard_error(error: DockyardError, debug_mode: bool) -> None:
    if debug_mode:
        raise

    print(f"Error: {error}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_ssh_error(debug_mode: bool) -> None:
    """Handle SSH connectivity error.

    Raises
    ------
    OSError, paramiko.SSHException
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print("SSH connectivity error\n", file=sys.stderr)
    print("This usually means:", file=sys.stderr)
    print("  - Instance not yet ready", file=sys.stderr)
    print("  - Security group blocking SSH", file=sys.stderr)
    print("  - Network connectivity issues", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_runtime_error(error: RuntimeError, debug_mode: bool) -> None:
    if debug_mode:
        raise

    print(f"Unexpected error: {error}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def configure_logging(debug_mode: bool) -> None:
    """Route log records to stderr, tagged with the machine id."""
    handler = logging.StreamHandler(sys.stderr)
    if debug_mode:
        handler.setFormatter(MachineFormatter("%(levelname)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(MachineFormatter("%(message)s"))
    handler.addFilter(MachineContextFilter())

    logging.basicConfig(
        level=logging.DEBUG if debug_mode else logging.INFO,
        handlers=[handler],
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def main() -> None:
    """Entry point for Fire CLI with graceful error handling.

    Fire maps ``DockyardCLI`` methods to commands. Errors are turned into
    short messages on stderr unless DOCKYARD_DEBUG=1, in which case they
    propagate with their traceback.
    """
    debug_mode = os.environ.get("DOCKYARD_DEBUG") == "1"
    configure_logging(debug_mode)

    try:
        fire.Fire(DockyardCLI())
    except ProviderCredentialsError:
        handle_credentials_error(debug_mode)
    except ValueError as e:
        handle_value_error(e, debug_mode)
    except ProviderAPIError as e:
        handle_api_error(e, debug_mode)
    except RemoveError as e:
        handle_remove_error(e, debug_mode)
    except DockyardError as e:
        handle_dockyard_error(e, debug_mode)
    except (OSError, paramiko.SSHException):
        handle_ssh_error(debug_mode)
    except RuntimeError as e:
        handle_runtime_error(e, debug_mode)
