"""Tests for the kazoo-backed coordination client."""

import pytest
from kazoo.exceptions import ConnectionLoss, NoAuthError, NoNodeError, SessionExpiredError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import EventType, KeeperState, WatchedEvent

from zkstate.coordination import paths
from zkstate.coordination.client import KazooCoordinationClient
from zkstate.exceptions import CoordinationUnavailable, PathNotFound


class FakeKazoo:
    """Records calls the way KazooClient would receive them."""

    def __init__(self):
        self.nodes = {"/aliases.json": b'{"collection": {}}', "/security.json": None}
        self.children = {"/live_nodes": ["h2:8983_solr", "h1:8983_solr"]}
        self.watchers = {}
        self.error = None
        self.start_error = None
        self.started = 0
        self.stopped = 0
        self.closed = 0

    def start(self, timeout=15):
        self.started += 1
        if self.start_error is not None:
            raise self.start_error

    def stop(self):
        self.stopped += 1

    def close(self):
        self.closed += 1

    def _record(self, path, watch):
        if self.error is not None:
            raise self.error
        if watch is not None:
            self.watchers.setdefault(path, set()).add(watch)

    def exists(self, path, watch=None):
        self._record(path, watch)
        return object() if path in self.nodes or path in self.children else None

    def get(self, path, watch=None):
        self._record(path, watch)
        if path not in self.nodes:
            raise NoNodeError()
        return self.nodes[path], object()

    def get_children(self, path, watch=None):
        self._record(path, watch)
        if path not in self.children:
            raise NoNodeError()
        return self.children[path]


class TestKazooCoordinationClient:
    """Test KazooCoordinationClient."""

    @pytest.fixture
    def kazoo(self):
        """Create fake kazoo client."""
        return FakeKazoo()

    @pytest.fixture
    def client(self, kazoo):
        """Create client over the fake."""
        return KazooCoordinationClient("zk1:2181/solr", timeout=2.0, client=kazoo)

    def test_start_is_idempotent(self, client, kazoo):
        """Test start connects once."""
        client.start()
        client.start()

        assert kazoo.started == 1

    def test_start_timeout(self, client, kazoo):
        """Test a connect timeout raises CoordinationUnavailable."""
        kazoo.start_error = KazooTimeoutError("timed out")

        with pytest.raises(CoordinationUnavailable, match="zk1:2181/solr"):
            client.start()

    def test_stop(self, client, kazoo):
        """Test stop closes a started session only."""
        client.stop()
        assert kazoo.stopped == 0

        client.start()
        client.stop()

        assert kazoo.stopped == 1
        assert kazoo.closed == 1

    def test_exists(self, client):
        """Test exists maps stat to bool."""
        assert client.exists(paths.ALIASES) is True
        assert client.exists(paths.ROLES) is False

    def test_get(self, client):
        """Test get returns raw bytes, empty for null data."""
        assert client.get(paths.ALIASES) == b'{"collection": {}}'
        assert client.get(paths.SECURITY_CONF) == b""

    def test_get_missing(self, client):
        """Test a missing node raises PathNotFound."""
        with pytest.raises(PathNotFound) as exc_info:
            client.get(paths.ROLES)

        assert exc_info.value.path == paths.ROLES

    def test_get_children(self, client):
        """Test children are returned as a list."""
        assert client.get_children(paths.LIVE_NODES_ZKNODE) == ["h2:8983_solr", "h1:8983_solr"]

        with pytest.raises(PathNotFound):
            client.get_children(paths.COLLECTIONS_ZKNODE)

    @pytest.mark.parametrize(
        "error",
        [ConnectionLoss(), SessionExpiredError(), NoAuthError(), KazooTimeoutError("slow")],
    )
    def test_connection_errors(self, client, kazoo, error):
        """Test every non-missing-node kazoo error raises CoordinationUnavailable."""
        kazoo.error = error

        with pytest.raises(CoordinationUnavailable):
            client.exists(paths.ALIASES)
        with pytest.raises(CoordinationUnavailable):
            client.get(paths.ALIASES)
        with pytest.raises(CoordinationUnavailable):
            client.get_children(paths.LIVE_NODES_ZKNODE)

    def test_watch_receives_path(self, client, kazoo):
        """Test kazoo events are delivered as the changed path."""
        fired = []
        client.exists(paths.ALIASES, watch=fired.append)

        (watcher,) = kazoo.watchers[paths.ALIASES]
        watcher(WatchedEvent(EventType.CHANGED, KeeperState.CONNECTED, paths.ALIASES))

        assert fired == [paths.ALIASES]

    def test_watch_wrapper_is_stable(self, client, kazoo):
        """Test re-arming with the same watcher registers it once."""
        fired = []
        client.exists(paths.ALIASES, watch=fired.append)
        client.exists(paths.ALIASES, watch=fired.append)

        assert len(kazoo.watchers[paths.ALIASES]) == 1
