"""
zkstate - SolrCloud cluster state reader.

Builds an in-memory, read-optimized view of a SolrCloud cluster from
ZooKeeper:
- Collections, shards, replicas and shard leaders
- Collection aliases and live nodes
- Cluster properties and security configuration
- Optional snapshot caching in an external store
- Watch-driven refresh of individual parts of the view
"""

__version__ = "0.1.0"

from zkstate.endpoint import CollectionEndpoint, Endpoint
from zkstate.exceptions import (
    CacheBackendError,
    CollectionNotFound,
    ConfigurationError,
    CoordinationUnavailable,
    PathNotFound,
    StateDecodeError,
    WatchRegistrationFailure,
    ZkStateError,
)
from zkstate.reader import ReaderState, SectionState, ZkStateReader
from zkstate.state.models import (
    ClusterSnapshot,
    CollectionState,
    Replica,
    ReplicaState,
    Shard,
)
from zkstate.utils.config import ReaderConfig, build_zk_host_string

__all__ = [
    # Reader
    "ZkStateReader",
    "ReaderConfig",
    "ReaderState",
    "SectionState",
    "build_zk_host_string",
    # Endpoints
    "CollectionEndpoint",
    "Endpoint",
    # Models
    "ClusterSnapshot",
    "CollectionState",
    "Shard",
    "Replica",
    "ReplicaState",
    # Errors
    "ZkStateError",
    "ConfigurationError",
    "CoordinationUnavailable",
    "PathNotFound",
    "StateDecodeError",
    "CollectionNotFound",
    "CacheBackendError",
    "WatchRegistrationFailure",
]
