"""
Persistent subscriptions on top of one-shot watches.

The coordination client delivers a single notification per watch
registration. :class:`WatchRegistry` keeps a set of callbacks per path
and re-arms the underlying watch every time it fires, so callers see a
standing subscription.

Notifications are not handled on the client's event thread. They are
put on a queue and consumed by one dispatcher thread, which re-arms the
watch first and only then runs the callback. A change that lands while
the callback runs therefore triggers another fire. Notifications may be
coalesced: callbacks must re-read state instead of trusting that one
fire means one change.
"""

import queue
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from zkstate.coordination.client import CoordinationClient
from zkstate.exceptions import WatchRegistrationFailure, ZkStateError
from zkstate.utils.logging import get_logger

logger = get_logger(__name__)

# Called with the path that changed.
WatchCallback = Callable[[str], Any]

_STOP = object()


class WatchState(str, Enum):
    """Per-path watch lifecycle."""

    ARMED = "armed"            # Waiting for the next change
    FIRED = "fired"            # Notification received, not yet re-armed
    REARMING = "rearming"      # Re-registering with the client
    CANCELLED = "cancelled"    # Removed; later fires are ignored


@dataclass
class WatchEntry:
    """
    Callbacks registered for one path.

    Attributes:
        path: Watched path
        callbacks: (token, callback) pairs in registration order, distinct
        children: Watch the child list instead of the node data
        state: Current watch state
        fire_count: Notifications handled so far
    """
    path: str
    callbacks: List[Tuple[str, WatchCallback]] = field(default_factory=list)
    children: bool = False
    state: WatchState = WatchState.ARMED
    fire_count: int = 0

    def find(self, callback: Any) -> Optional[int]:
        """Index of a callback (or its token), or None."""
        for index, (token, registered) in enumerate(self.callbacks):
            if token == callback or registered == callback:
                return index
        return None


class WatchRegistry:
    """
    Maps paths to callbacks and keeps one-shot watches armed.

    Thread-safe: watch/cancel may be called from any thread while the
    dispatcher runs callbacks.
    """

    def __init__(self, client: CoordinationClient):
        """
        Initialize registry.

        Args:
            client: Coordination-store client used to arm watches
        """
        self.client = client

        self._entries: Dict[str, WatchEntry] = {}
        self._lock = threading.RLock()

        self._events: "queue.Queue[Any]" = queue.Queue()
        self._dispatcher: Optional[threading.Thread] = None

    def watch(
        self,
        path: str,
        callback: WatchCallback,
        children: bool = False,
        missing_ok: bool = False,
    ) -> Optional[str]:
        """
        Subscribe a callback to changes of a path.

        Args:
            path: Path to watch
            callback: Called with the path after each change
            children: Watch the child list instead of the node data
            missing_ok: Arm an existence watch on a data path that does
                not exist yet; it fires when the node is created

        Returns:
            Registration token, or None if the callback was already
            registered for this path

        Raises:
            WatchRegistrationFailure: If the path is missing or the
                watch cannot be armed
        """
        if not callable(callback):
            raise TypeError("callback must be callable")

        with self._lock:
            entry = self._entries.get(path)

            if entry is not None and entry.find(callback) is not None:
                logger.debug("Callback already registered", path=path)
                return None

            if entry is None:
                try:
                    armed = self._arm(path, children)
                except ZkStateError as e:
                    raise WatchRegistrationFailure(path, str(e)) from e
                if not armed and not missing_ok:
                    raise WatchRegistrationFailure(path, "path does not exist")

                entry = WatchEntry(path=path, children=children)
                self._entries[path] = entry

            token = uuid.uuid4().hex
            entry.callbacks.append((token, callback))

        self._ensure_dispatcher()

        logger.debug(
            "Registered watch callback",
            path=path,
            callbacks=len(entry.callbacks),
            children=children,
        )
        return token

    def cancel(self, path: str, callback: Any = None) -> bool:
        """
        Remove one callback, or every callback of a path.

        Args:
            path: Watched path
            callback: Callback or token to remove; None removes all

        Returns:
            True if anything was removed
        """
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                return False

            if callback is not None:
                index = entry.find(callback)
                if index is None:
                    return False
                del entry.callbacks[index]
                if entry.callbacks:
                    return True

            del self._entries[path]
            entry.state = WatchState.CANCELLED

        if callback is None:
            # A plain read resets the client's pending watch bookkeeping.
            try:
                self.client.get(path)
            except ZkStateError as e:
                logger.debug("Reset read after cancel failed", path=path, error=str(e))

        logger.debug("Cancelled watch", path=path, all_callbacks=callback is None)
        return True

    def on_fire(self, path: str) -> Any:
        """
        Handle a notification for a path.

        Re-arms the watch, then runs the first registered callback.

        Args:
            path: Path whose watch fired

        Returns:
            The callback's return value, or None if nothing is registered
        """
        with self._lock:
            entry = self._entries.get(path)
            if entry is None or not entry.callbacks:
                logger.debug("Watch fired with no callbacks", path=path)
                return None

            entry.state = WatchState.FIRED
            entry.fire_count += 1
            _, callback = entry.callbacks[0]
            children = entry.children
            entry.state = WatchState.REARMING

        try:
            self._arm(path, children)
        except ZkStateError as e:
            with self._lock:
                entry.state = WatchState.FIRED
            logger.warning("Failed to re-arm watch", path=path, error=str(e))
        else:
            with self._lock:
                if entry.state is WatchState.REARMING:
                    entry.state = WatchState.ARMED

        logger.debug("Dispatching watch callback", path=path, fire_count=entry.fire_count)
        return callback(path)

    def callbacks(self, path: str) -> List[WatchCallback]:
        """Callbacks registered for a path, in registration order."""
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                return []
            return [callback for _, callback in entry.callbacks]

    def state(self, path: str) -> Optional[WatchState]:
        with self._lock:
            entry = self._entries.get(path)
            return entry.state if entry else None

    def paths(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def notify(self, path: str) -> None:
        """Queue a notification; this is the watcher handed to the client."""
        self._events.put(path)

    def flush(self) -> None:
        """Block until every queued notification has been dispatched."""
        if self._dispatcher is not None and self._dispatcher.is_alive():
            self._events.join()

    def close(self) -> None:
        """Cancel all watches and stop the dispatcher thread."""
        for path in self.paths():
            self.cancel(path)

        dispatcher = self._dispatcher
        if dispatcher is not None and dispatcher.is_alive():
            self._events.put(_STOP)
            dispatcher.join(timeout=5.0)
        self._dispatcher = None

        logger.debug("Watch registry closed")

    def _arm(self, path: str, children: bool) -> bool:
        """Register the one-shot watch; False if the node does not exist."""
        if children:
            self.client.get_children(path, watch=self.notify)
            return True
        # An exists() watch also fires when the node is deleted or recreated.
        return self.client.exists(path, watch=self.notify)

    def _ensure_dispatcher(self) -> None:
        with self._lock:
            if self._dispatcher is not None and self._dispatcher.is_alive():
                return

            self._dispatcher = threading.Thread(
                target=self._dispatch_loop,
                name="zkstate-watch-dispatcher",
                daemon=True,
            )
            self._dispatcher.start()

    def _dispatch_loop(self) -> None:
        while True:
            path = self._events.get()
            try:
                if path is _STOP:
                    return
                self.on_fire(path)
            except Exception as e:
                logger.error("Watch callback failed", path=path, error=str(e), exc_info=True)
            finally:
                self._events.task_done()
