"""Local persistence of machine configuration and runtime state."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

import yaml

from dockyard.constants import DEFAULT_STORE_DIR, MACHINE_FILE_NAME
from dockyard.core.models import MachineConfig, MachineState
from dockyard.exceptions import ConfigurationError, NotFoundError
from dockyard.utils import atomic_file_write

logger = logging.getLogger(__name__)


def default_store_root() -> Path:
    """Store root from ``DOCKYARD_STORE``, falling back to the home directory."""
    return Path(os.environ.get("DOCKYARD_STORE", DEFAULT_STORE_DIR)).expanduser()


class MachineStore:
    """Directory-per-machine store of ``machine.yaml`` records.

    Each machine directory holds the resolved configuration and the
    driver state, plus the SSH key material written by the driver.

    Parameters
    ----------
    root : Path | str | None
        Store root; ``default_store_root()`` when None
    """

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root).expanduser() if root is not None else default_store_root()

    def machine_dir(self, name: str) -> Path:
        if not name or "/" in name or name in (".", ".."):
            raise ConfigurationError("machine-name", f"invalid machine name: {name!r}")
        return self.root / name

    def machine_file(self, name: str) -> Path:
        return self.machine_dir(name) / MACHINE_FILE_NAME

    def exists(self, name: str) -> bool:
        return self.machine_file(name).exists()

    def create_dir(self, name: str) -> Path:
        """Create the machine directory with owner-only permissions."""
        path = self.machine_dir(name)
        path.mkdir(parents=True, exist_ok=True, mode=0o700)
        return path

    def save(self, config: MachineConfig, state: MachineState) -> None:
        """Write configuration and state atomically with mode 0600."""
        self.create_dir(config.machine_name)
        content = yaml.safe_dump(
            {"config": config.to_dict(), "state": state.to_dict()},
            default_flow_style=False,
            sort_keys=False,
        )
        atomic_file_write(self.machine_file(config.machine_name), content)
        logger.debug("saved machine %s", config.machine_name)

    def load(self, name: str) -> tuple[MachineConfig, MachineState]:
        """Read a machine record.

        Raises
        ------
        NotFoundError
            If no machine with that name is stored
        ConfigurationError
            If the record cannot be parsed
        """
        path = self.machine_file(name)

        if not path.exists():
            raise NotFoundError(f"machine {name} does not exist")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError("machine-file", f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("config"), dict):
            raise ConfigurationError("machine-file", f"{path} has no machine configuration")

        try:
            config = MachineConfig.from_dict(data["config"])
            state = MachineState.from_dict(data.get("state"))
        except (TypeError, ValueError) as e:
            raise ConfigurationError("machine-file", f"Corrupt machine record {path}: {e}") from e

        return config, state

    def remove(self, name: str) -> None:
        """Delete the machine directory, including its key material."""
        path = self.machine_dir(name)
        if path.exists():
            shutil.rmtree(path)
            logger.debug("removed machine directory %s", path)

    def list_names(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(
            entry.name
            for entry in self.root.iterdir()
            if (entry / MACHINE_FILE_NAME).exists()
        )
