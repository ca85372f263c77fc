"""
Coordination-store client.

The reader only needs four primitives from the coordination service:
existence checks, blocking data reads, child listings and one-shot
watches. :class:`CoordinationClient` describes that surface;
:class:`KazooCoordinationClient` implements it on top of kazoo.
"""

from typing import Callable, Dict, List, Optional, Protocol

from kazoo.client import KazooClient
from kazoo.exceptions import KazooException, NoNodeError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import WatchedEvent

from zkstate.exceptions import CoordinationUnavailable, PathNotFound
from zkstate.utils.logging import get_logger

logger = get_logger(__name__)

# Called with the path whose watch fired.
Watcher = Callable[[str], None]


class CoordinationClient(Protocol):
    """
    Read-only view of a hierarchical coordination store.

    A watcher passed to any method is one-shot: it fires at most once,
    on the next change of the path, and must be passed again to keep
    observing it.
    """

    def exists(self, path: str, watch: Optional[Watcher] = None) -> bool:
        """Return True when the node exists."""

    def get(self, path: str, watch: Optional[Watcher] = None) -> bytes:
        """Return the node's raw bytes; raise PathNotFound when missing."""

    def get_children(self, path: str, watch: Optional[Watcher] = None) -> List[str]:
        """Return the node's direct children; raise PathNotFound when missing."""


class KazooCoordinationClient:
    """
    :class:`CoordinationClient` backed by a :class:`kazoo.client.KazooClient`.

    Translates kazoo errors into the reader's error taxonomy: missing
    nodes become :class:`PathNotFound`; any other kazoo error, ACL refusals
    included, becomes :class:`CoordinationUnavailable`.
    """

    def __init__(
        self,
        hosts: str,
        timeout: float = 10.0,
        client: Optional[KazooClient] = None,
    ):
        """
        Initialize the client.

        Args:
            hosts: Connection string ("zk1:2181,zk2:2181/chroot")
            timeout: Session and connect timeout in seconds
            client: Preconfigured kazoo client (skips construction)
        """
        self.hosts = hosts
        self.timeout = timeout
        self._zk = client or KazooClient(hosts=hosts, timeout=timeout, read_only=True)
        self._started = False
        # One wrapper per watcher; kazoo keeps watchers in per-path sets.
        self._wrapped: Dict[Watcher, Callable[[WatchedEvent], None]] = {}

    def start(self) -> None:
        """Connect to the ensemble, blocking up to the timeout."""
        if self._started:
            return

        try:
            self._zk.start(timeout=self.timeout)
        except KazooTimeoutError as e:
            raise CoordinationUnavailable(
                f"Timed out connecting to ZooKeeper at '{self.hosts}'"
            ) from e
        except KazooException as e:
            raise CoordinationUnavailable(
                f"Failed to connect to ZooKeeper at '{self.hosts}': {e}"
            ) from e

        self._started = True
        logger.info("Connected to ZooKeeper", hosts=self.hosts)

    def stop(self) -> None:
        """Close the session and release the connection."""
        if not self._started:
            return

        self._started = False
        self._zk.stop()
        self._zk.close()
        logger.info("Disconnected from ZooKeeper", hosts=self.hosts)

    def exists(self, path: str, watch: Optional[Watcher] = None) -> bool:
        try:
            return self._zk.exists(path, watch=self._wrap(watch)) is not None
        except (KazooException, KazooTimeoutError) as e:
            raise CoordinationUnavailable(f"Lost connection while checking '{path}': {e}") from e

    def get(self, path: str, watch: Optional[Watcher] = None) -> bytes:
        try:
            data, _ = self._zk.get(path, watch=self._wrap(watch))
        except NoNodeError as e:
            raise PathNotFound(path) from e
        except (KazooException, KazooTimeoutError) as e:
            raise CoordinationUnavailable(f"Lost connection while reading '{path}': {e}") from e
        return data or b""

    def get_children(self, path: str, watch: Optional[Watcher] = None) -> List[str]:
        try:
            return list(self._zk.get_children(path, watch=self._wrap(watch)))
        except NoNodeError as e:
            raise PathNotFound(path) from e
        except (KazooException, KazooTimeoutError) as e:
            raise CoordinationUnavailable(f"Lost connection while listing '{path}': {e}") from e

    def _wrap(self, watch: Optional[Watcher]) -> Optional[Callable[[WatchedEvent], None]]:
        if watch is None:
            return None

        wrapped = self._wrapped.get(watch)
        if wrapped is None:
            def _on_event(event: WatchedEvent) -> None:
                logger.debug("ZooKeeper watch fired", path=event.path, type=event.type)
                watch(event.path)

            wrapped = self._wrapped.setdefault(watch, _on_event)

        return wrapped
