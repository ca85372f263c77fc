"""Cluster topology models, merging and bootstrap loading."""

from zkstate.state.loader import SnapshotLoader
from zkstate.state.merger import StateMerger
from zkstate.state.models import (
    ClusterSnapshot,
    CollectionState,
    Replica,
    ReplicaState,
    Shard,
    StateFormat,
)

__all__ = [
    "SnapshotLoader",
    "StateMerger",
    "ClusterSnapshot",
    "CollectionState",
    "Replica",
    "ReplicaState",
    "Shard",
    "StateFormat",
]
