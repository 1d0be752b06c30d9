"""Exception hierarchy for remarko."""

from typing import Optional


class RemarkoError(Exception):
    """Base exception for all remarko errors."""


class TransportError(RemarkoError):
    """Connecting to, authenticating with or talking to the device failed."""

    def __init__(self, message: str, host: Optional[str] = None):
        self.host = host
        if host:
            message = f"{host}: {message}"
        super().__init__(message)


class ConfigResolutionError(RemarkoError):
    """The SSH host profile could not be resolved."""


class MetadataError(RemarkoError):
    """A metadata sidecar is missing or malformed.

    Raised per hash; the tree reconstructor collects these instead of
    aborting the whole build.
    """

    def __init__(self, hash_value: str, reason: str):
        self.hash = hash_value
        self.reason = reason
        super().__init__(f"Invalid metadata for {hash_value}: {reason}")


class RemoteObjectMissingError(RemarkoError):
    """A document object referenced by the metadata is absent on the device."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Remote object not found: {path}")


class LocalIOError(RemarkoError):
    """Reading or writing the local filesystem failed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class PathSegmentNotFoundError(RemarkoError):
    """A segment of a remote directory path does not exist."""

    def __init__(self, segment: str, path: str):
        self.segment = segment
        self.path = path
        super().__init__(f"Directory '{segment}' not found (while resolving '{path}')")
