"""Configuration for remarko.

Settings come from environment variables; the SSH connection details of the
device come from the user's OpenSSH client configuration.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import paramiko

from .exceptions import ConfigResolutionError
from .utils import DEFAULT_DOCUMENT_DIR

logger = logging.getLogger(__name__)

DEFAULT_HOST_ALIAS = "remarkable"
DEFAULT_SSH_PORT = 22
DEFAULT_SSH_USER = "root"


@dataclass
class HostProfile:
    """Connection details resolved from an SSH config ``Host`` block."""

    alias: str
    hostname: str
    port: int = DEFAULT_SSH_PORT
    user: str = DEFAULT_SSH_USER
    identity_file: Optional[str] = None


class Config:
    """Runtime settings, read from the environment on access."""

    @property
    def host(self) -> str:
        """SSH host alias of the device."""
        return os.environ.get("REMARKO_HOST", DEFAULT_HOST_ALIAS)

    @property
    def ssh_config_path(self) -> Path:
        """Path to the OpenSSH client configuration."""
        value = os.environ.get("REMARKO_SSH_CONFIG")
        if value:
            return Path(value).expanduser()
        return Path.home() / ".ssh" / "config"

    @property
    def document_dir(self) -> str:
        """Directory of the object store on the device."""
        return os.environ.get("REMARKO_DOCUMENT_DIR", DEFAULT_DOCUMENT_DIR)

    def load_ssh_config(self) -> paramiko.SSHConfig:
        """Parse the SSH client configuration.

        Raises:
            ConfigResolutionError: If the file cannot be read or parsed
        """
        path = self.ssh_config_path
        try:
            return paramiko.SSHConfig.from_path(str(path))
        except OSError as e:
            raise ConfigResolutionError(f"Cannot read SSH config {path}: {e}") from e
        except paramiko.ConfigParseError as e:
            raise ConfigResolutionError(f"Cannot parse SSH config {path}: {e}") from e

    def resolve_host(self, alias: Optional[str] = None) -> HostProfile:
        """Resolve the connection details of a host alias.

        The alias must have its own ``Host`` block; without a ``HostName``
        the alias itself is used as the host name.

        Args:
            alias: Host alias (defaults to :attr:`host`)

        Returns:
            HostProfile for the alias

        Raises:
            ConfigResolutionError: If the alias is not configured
        """
        alias = alias or self.host
        ssh_config = self.load_ssh_config()

        if alias not in ssh_config.get_hostnames():
            raise ConfigResolutionError(
                f"Host '{alias}' not found in {self.ssh_config_path}"
            )

        params = ssh_config.lookup(alias)
        hostname = params.get("hostname")
        if not hostname:
            raise ConfigResolutionError(
                f"Host '{alias}' has no HostName in {self.ssh_config_path}"
            )

        try:
            port = int(params.get("port", DEFAULT_SSH_PORT))
        except ValueError:
            raise ConfigResolutionError(
                f"Host '{alias}' has an invalid Port: {params.get('port')!r}"
            ) from None

        identity_files = params.get("identityfile") or []
        profile = HostProfile(
            alias=alias,
            hostname=hostname,
            port=port,
            user=params.get("user", DEFAULT_SSH_USER),
            identity_file=identity_files[0] if identity_files else None,
        )
        logger.debug(f"Resolved host {alias}: {profile}")
        return profile


config = Config()
