"""SSH keypair management for EC2 machines."""

from __future__ import annotations

import logging
from pathlib import Path

import paramiko

from dockyard.core.interfaces import ProviderGateway
from dockyard.core.models import KeyPairHandle
from dockyard.exceptions import ConflictError

logger = logging.getLogger(__name__)

RSA_KEY_BITS = 2048


def generate_ssh_key(key_path: str) -> None:
    """Write a new RSA private key and its OpenSSH public key.

    The private key goes to ``key_path`` with mode 0600 and the public key
    to ``key_path + ".pub"``.
    """
    private_path = Path(key_path)
    private_path.parent.mkdir(parents=True, exist_ok=True)

    key = paramiko.RSAKey.generate(RSA_KEY_BITS)
    key.write_private_key_file(str(private_path))
    private_path.chmod(0o600)

    public_path = Path(f"{key_path}.pub")
    public_path.write_text(f"{key.get_name()} {key.get_base64()}\n")


class KeyPairManager:
    """Create and remove the machine's SSH keypair.

    Parameters
    ----------
    gateway : ProviderGateway
        Provider gateway used for all API calls
    """

    def __init__(self, gateway: ProviderGateway) -> None:
        self.gateway = gateway

    def ensure_absent(self, name: str) -> None:
        """Fail if a remote keypair already uses ``name``.

        Raises
        ------
        ConflictError
            If the keypair exists; the driver never reuses a foreign keypair
        """
        if self.gateway.get_key_pair(name) is not None:
            raise ConflictError(
                f"There is already a keypair with the name {name}. "
                "Please either remove that keypair or use a different machine name."
            )

    def create_machine_key_pair(self, name: str, key_path: str) -> KeyPairHandle:
        """Generate local key material and register the public key remotely.

        Parameters
        ----------
        name : str
            Keypair name, normally the machine name
        key_path : str
            Where to write the private key; the public key gets a ``.pub`` suffix

        Returns
        -------
        KeyPairHandle
            Handle naming the keypair and its local files

        Raises
        ------
        OSError
            If the key files cannot be written or read back
        ProviderError
            If the import fails; the local files are kept for diagnosis
        """
        generate_ssh_key(key_path)

        public_key_path = f"{key_path}.pub"
        public_key = Path(public_key_path).read_bytes()

        logger.debug("creating key pair: %s", name)
        self.gateway.import_key_pair(name, public_key)

        return KeyPairHandle(
            key_name=name, private_key_path=key_path, public_key_path=public_key_path
        )

    def delete_machine_key_pair(self, name: str) -> None:
        """Remove the remote keypair; local files are left alone."""
        logger.debug("deleting key pair: %s", name)
        self.gateway.delete_key_pair(name)
