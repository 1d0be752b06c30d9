"""SSH access to the device's document store."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import paramiko

from .exceptions import LocalIOError, MetadataError, TransportError
from .models import Metadata
from .utils import DEFAULT_DOCUMENT_DIR, METADATA_SUFFIX, get_hashes_from_ls_output

if TYPE_CHECKING:
    from .config import HostProfile

logger = logging.getLogger(__name__)


class RemoteAccess(Protocol):
    """Operations the sync core needs from the device."""

    document_dir: str

    def list_hashes(self) -> list[str]: ...

    def fetch_metadata(self, hash_value: str) -> Metadata: ...

    def exists(self, path: str) -> bool: ...

    def fetch_file(self, path: str) -> bytes: ...

    def send_file(self, local_path: Path, remote_path: str) -> None: ...


class SSHRemote:
    """Remote access over SSH and SFTP.

    All calls are blocking and run over a single connection. Use as a
    context manager to open and close it.

    Examples:
        >>> with SSHRemote(config.resolve_host()) as remote:
        ...     hashes = remote.list_hashes()
    """

    def __init__(
        self,
        profile: HostProfile,
        document_dir: str = DEFAULT_DOCUMENT_DIR,
        timeout: float = 20.0,
    ):
        """Initialize the remote.

        Args:
            profile: Resolved SSH host profile
            document_dir: Directory of the object store on the device
            timeout: Connect timeout in seconds
        """
        self.profile = profile
        self.document_dir = document_dir
        self.timeout = timeout
        self._ssh: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None

    def __enter__(self) -> SSHRemote:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def host(self) -> str:
        return self.profile.hostname

    def connect(self) -> None:
        """Open the SSH connection and SFTP channel.

        Raises:
            TransportError: If connecting or authenticating fails
        """
        if self._ssh is not None:
            return

        logger.debug(
            f"Connecting to {self.profile.user}@{self.host}:{self.profile.port}"
        )
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        kwargs: dict = {
            "hostname": self.host,
            "port": self.profile.port,
            "username": self.profile.user,
            "timeout": self.timeout,
        }
        if self.profile.identity_file:
            kwargs["key_filename"] = self.profile.identity_file

        try:
            client.connect(**kwargs)
            self._sftp = client.open_sftp()
        except paramiko.AuthenticationException as e:
            client.close()
            raise TransportError(f"authentication failed: {e}", host=self.host) from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise TransportError(f"connection failed: {e}", host=self.host) from e

        self._ssh = client

    def close(self) -> None:
        """Close the SFTP channel and the connection."""
        if self._sftp is not None:
            self._sftp.close()
            self._sftp = None
        if self._ssh is not None:
            self._ssh.close()
            self._ssh = None

    def _require_ssh(self) -> paramiko.SSHClient:
        if self._ssh is None:
            raise TransportError("not connected", host=self.host)
        return self._ssh

    def _require_sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise TransportError("not connected", host=self.host)
        return self._sftp

    def run_command(self, command: str) -> str:
        """Run a command on the device and return its stdout.

        Raises:
            TransportError: If the channel fails or the command exits non-zero
        """
        ssh = self._require_ssh()
        logger.debug(f"Running remote command: {command}")
        try:
            _, stdout, stderr = ssh.exec_command(command)
            output = stdout.read().decode("utf-8", errors="replace")
            error = stderr.read().decode("utf-8", errors="replace")
            status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise TransportError(
                f"command {command!r} failed: {e}", host=self.host
            ) from e

        if status != 0:
            raise TransportError(
                f"command {command!r} exited {status}: {error.strip()}",
                host=self.host,
            )
        return output

    def metadata_path(self, hash_value: str) -> str:
        return posixpath.join(self.document_dir, f"{hash_value}{METADATA_SUFFIX}")

    def list_hashes(self) -> list[str]:
        """List the object hashes in the document directory."""
        output = self.run_command(f"ls {self.document_dir}")
        hashes = get_hashes_from_ls_output(output)
        logger.debug(f"Found {len(hashes)} object(s) in {self.document_dir}")
        return hashes

    def fetch_metadata(self, hash_value: str) -> Metadata:
        """Read and parse the metadata sidecar of one object.

        Raises:
            MetadataError: If the sidecar is missing or malformed
            TransportError: If the connection fails
        """
        sftp = self._require_sftp()
        path = self.metadata_path(hash_value)
        try:
            with sftp.open(path, "r") as f:
                text = f.read().decode("utf-8", errors="replace")
        except FileNotFoundError:
            raise MetadataError(hash_value, f"{path} does not exist") from None
        except PermissionError as e:
            raise MetadataError(hash_value, f"{path} is not readable: {e}") from e
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise TransportError(f"reading {path} failed: {e}", host=self.host) from e
        return Metadata.from_json(hash_value, text)

    def exists(self, path: str) -> bool:
        """Check whether a path exists on the device."""
        sftp = self._require_sftp()
        try:
            sftp.stat(path)
        except FileNotFoundError:
            return False
        except (paramiko.SSHException, OSError) as e:
            raise TransportError(f"stat {path} failed: {e}", host=self.host) from e
        return True

    def fetch_file(self, path: str) -> bytes:
        """Read a whole file from the device."""
        sftp = self._require_sftp()
        logger.debug(f"Downloading {path}")
        try:
            with sftp.open(path, "rb") as f:
                f.prefetch()
                return f.read()
        except (OSError, paramiko.SSHException) as e:
            raise TransportError(
                f"downloading {path} failed: {e}", host=self.host
            ) from e

    def send_file(self, local_path: Path, remote_path: str) -> None:
        """Upload a local file to the device."""
        if not local_path.is_file():
            raise LocalIOError(str(local_path), "not a file")

        sftp = self._require_sftp()
        logger.debug(f"Uploading {local_path} to {remote_path}")
        try:
            sftp.put(str(local_path), remote_path)
        except (OSError, paramiko.SSHException) as e:
            raise TransportError(
                f"uploading to {remote_path} failed: {e}", host=self.host
            ) from e
