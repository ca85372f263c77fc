"""
Errors raised by the cluster state reader.

Every error derives from :class:`ZkStateError` so callers can catch the
whole family at one place.
"""

from typing import Optional


class ZkStateError(Exception):
    """Base error for zkstate."""
    pass


class ConfigurationError(ZkStateError):
    """Invalid construction-time configuration (hosts, chroot, timeout)."""
    pass


class CoordinationUnavailable(ZkStateError):
    """The coordination ensemble could not be reached or the session was lost."""
    pass


class PathNotFound(ZkStateError):
    """
    A required coordination-store node does not exist.

    Attributes:
        path: Path of the missing node
    """

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = path
        super().__init__(message or f"Cannot read data from location '{path}'")


class StateDecodeError(ZkStateError):
    """
    A node's payload is not a JSON object.

    Attributes:
        path: Path of the node that failed to decode
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Cannot decode data at '{path}': {reason}")


class CollectionNotFound(ZkStateError):
    """
    A collection name could not be resolved or has no published state.

    Attributes:
        collection: The name that failed to resolve (None for cluster-wide lookups)
    """

    def __init__(self, collection: Optional[str], message: Optional[str] = None):
        self.collection = collection
        super().__init__(message or f"Collection '{collection}' does not exist.")


class CacheBackendError(ZkStateError):
    """The external cache backend failed or rejected the request."""
    pass


class WatchRegistrationFailure(ZkStateError):
    """
    A watch could not be armed on a path.

    Attributes:
        path: Path the watch was requested for
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Cannot watch '{path}': {reason}")
