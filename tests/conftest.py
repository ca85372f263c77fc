"""Shared fixtures: an in-memory coordination tree and cache store."""

import json
from typing import Callable, Dict, List, Optional

import pytest

from zkstate.exceptions import CacheBackendError, CoordinationUnavailable, PathNotFound


class FakeCoordinationClient:
    """
    In-memory coordination tree with one-shot watches.

    Watchers fire synchronously from the mutating call, the way a real
    client delivers them from its event thread.
    """

    def __init__(self):
        self.nodes: Dict[str, bytes] = {}
        self.data_watchers: Dict[str, List[Callable[[str], None]]] = {}
        self.child_watchers: Dict[str, List[Callable[[str], None]]] = {}
        self.reads: List[tuple] = []
        self.unavailable = False

    # Store mutations

    def create(self, path: str, data: bytes = b"", notify: bool = True) -> None:
        parent = path.rsplit("/", 1)[0]
        if parent and parent not in self.nodes:
            self.create(parent, notify=notify)

        created = path not in self.nodes
        self.nodes[path] = data
        if not notify:
            return
        self.fire(path)
        if created and parent:
            self.fire(parent, children=True)

    def set_json(self, path: str, document, notify: bool = True) -> None:
        self.create(path, json.dumps(document).encode("utf-8"), notify=notify)

    def delete(self, path: str) -> None:
        for node in [n for n in self.nodes if n == path or n.startswith(path + "/")]:
            del self.nodes[node]
        self.fire(path)
        parent = path.rsplit("/", 1)[0]
        if parent:
            self.fire(parent, children=True)

    def fire(self, path: str, children: bool = False) -> None:
        """Deliver and drop the pending one-shot watchers of a path."""
        watchers = self.child_watchers if children else self.data_watchers
        for watcher in watchers.pop(path, []):
            watcher(path)

    # CoordinationClient surface

    def exists(self, path: str, watch: Optional[Callable[[str], None]] = None) -> bool:
        self._check("exists", path)
        if watch is not None:
            self.data_watchers.setdefault(path, []).append(watch)
        return path in self.nodes

    def get(self, path: str, watch: Optional[Callable[[str], None]] = None) -> bytes:
        self._check("get", path)
        if path not in self.nodes:
            raise PathNotFound(path)
        if watch is not None:
            self.data_watchers.setdefault(path, []).append(watch)
        return self.nodes[path]

    def get_children(self, path: str, watch: Optional[Callable[[str], None]] = None) -> List[str]:
        self._check("get_children", path)
        if path not in self.nodes:
            raise PathNotFound(path)
        if watch is not None:
            self.child_watchers.setdefault(path, []).append(watch)
        prefix = path.rstrip("/") + "/"
        return sorted(
            node[len(prefix):]
            for node in self.nodes
            if node.startswith(prefix) and "/" not in node[len(prefix):]
        )

    def _check(self, operation: str, path: str) -> None:
        if self.unavailable:
            raise CoordinationUnavailable("connection lost")
        self.reads.append((operation, path))


class FakeCacheStore:
    """Dict-backed cache store that can be switched into a failing mode."""

    def __init__(self):
        self.items: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.failing = False

    def get(self, key: str) -> Optional[str]:
        if self.failing:
            raise CacheBackendError("backend down")
        return self.items.get(key)

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if self.failing:
            raise CacheBackendError("backend down")
        self.items[key] = value
        self.ttls[key] = ttl


def replica(node: str, state: str = "active", leader: Optional[str] = None, core: str = "") -> dict:
    """Replica document for a node id like 'h1:8983_solr'."""
    host = node.split("_")[0]
    data = {
        "base_url": f"http://{host}/solr",
        "node_name": node,
        "core": core,
        "state": state,
    }
    if leader is not None:
        data["leader"] = leader
    return data


def populate_cluster(zk: FakeCoordinationClient) -> None:
    """
    Two-node cluster with one per-collection and one legacy collection.

    - products: state.json, two shards, alias "prod"
    - logs: only in /clusterstate.json
    - /clusterstate.json also has a stale "products" entry (all down)
    """
    zk.create("/live_nodes/h1:8983_solr")
    zk.create("/live_nodes/h2:8983_solr")

    zk.set_json("/aliases.json", {"collection": {"prod": "products"}})

    zk.set_json("/collections/products/state.json", {
        "products": {
            "shards": {
                "shard1": {
                    "range": "80000000-ffffffff",
                    "state": "active",
                    "replicas": {
                        "core_node1": replica("h1:8983_solr", leader="true", core="products_shard1_replica_n1"),
                        "core_node2": replica("h2:8983_solr", core="products_shard1_replica_n2"),
                    },
                },
                "shard2": {
                    "range": "0-7fffffff",
                    "state": "active",
                    "replicas": {
                        "core_node3": replica("h1:8983_solr", leader="true", core="products_shard2_replica_n3"),
                        "core_node4": replica("h2:8983_solr", state="down", core="products_shard2_replica_n4"),
                    },
                },
            },
            "replicationFactor": "2",
            "maxShardsPerNode": "2",
            "router": {"name": "compositeId"},
            "autoAddReplicas": "false",
        }
    })
    zk.set_json("/collections/products/leaders/shard1/leader", {
        "core": "products_shard1_replica_n1",
        "base_url": "http://h1:8983/solr",
        "node_name": "h1:8983_solr",
    })
    zk.create("/collections/products/leaders/shard2")

    zk.create("/collections/logs")
    zk.set_json("/clusterstate.json", {
        "logs": {
            "shards": {
                "shard1": {
                    "range": None,
                    "replicas": {
                        "core_node1": replica("h2:8983_solr", leader="true", core="logs_shard1_replica1"),
                    },
                },
            },
            "router": "implicit",
        },
        "products": {
            "shards": {
                "shard1": {
                    "replicas": {
                        "core_node1": replica("h1:8983_solr", state="down"),
                    },
                },
            },
        },
    })

    zk.set_json("/clusterprops.json", {"urlScheme": "http"})
    zk.create("/security.json", b"")


@pytest.fixture
def zk():
    """Empty in-memory coordination tree."""
    return FakeCoordinationClient()


@pytest.fixture
def cluster(zk):
    """Coordination tree populated with the sample cluster."""
    populate_cluster(zk)
    zk.reads.clear()
    return zk


@pytest.fixture
def cache_store():
    """Dict-backed cache store."""
    return FakeCacheStore()
