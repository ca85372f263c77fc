"""
Cluster topology models.

State documents come in two schema generations:

- legacy: the monolithic ``/clusterstate.json`` written by old Solr
  releases, where ``router`` may be a bare string and numeric
  properties are often strings;
- current: one ``/collections/<name>/state.json`` per collection, with
  ``router`` as an object and integer properties.

Both are parsed into the same canonical :class:`CollectionState` so
nothing downstream has to know which generation produced an entry.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from zkstate.coordination import paths


class ReplicaState(str, Enum):
    """Replica lifecycle states. Only ACTIVE is used for routing."""

    ACTIVE = "active"
    DOWN = "down"
    RECOVERING = "recovering"
    RECOVERY_FAILED = "recovery_failed"


class StateFormat(str, Enum):
    """Schema generation a state document was written in."""

    LEGACY = "legacy"
    CURRENT = "current"


DEFAULT_LEGACY_ROUTER = "compositeId"


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Replica:
    """
    One physical copy of a shard.

    Attributes:
        name: Replica name (core_node name)
        base_url: Base URI of the hosting node
        node_name: Node identifier as registered under /live_nodes
        core: Core name on the node
        state: Replica state (see ReplicaState)
        leader: Leader flag exactly as stored; only the string "true" counts
        type: Replica type (NRT, TLOG, PULL) when published
        properties: Remaining properties, kept verbatim
    """
    name: str
    base_url: str
    node_name: str
    core: str = ""
    state: str = ReplicaState.DOWN.value
    leader: Any = None
    type: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.state == ReplicaState.ACTIVE.value

    @property
    def is_leader(self) -> bool:
        # Stored as a string, never as a JSON boolean.
        return self.leader == "true"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the canonical document shape."""
        data = dict(self.properties)
        data[paths.BASE_URL_PROP] = self.base_url
        data[paths.NODE_NAME_PROP] = self.node_name
        data[paths.CORE_NAME_PROP] = self.core
        data[paths.STATE_PROP] = self.state
        if self.leader is not None:
            data[paths.LEADER_PROP] = self.leader
        if self.type is not None:
            data[paths.TYPE_PROP] = self.type
        return data

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "Replica":
        """Create from a replica document."""
        known = {
            paths.BASE_URL_PROP, paths.NODE_NAME_PROP, paths.CORE_NAME_PROP,
            paths.STATE_PROP, paths.LEADER_PROP, paths.TYPE_PROP,
        }
        return cls(
            name=name,
            base_url=data.get(paths.BASE_URL_PROP, ""),
            node_name=data.get(paths.NODE_NAME_PROP, ""),
            core=data.get(paths.CORE_NAME_PROP, ""),
            state=data.get(paths.STATE_PROP, ReplicaState.DOWN.value),
            leader=data.get(paths.LEADER_PROP),
            type=data.get(paths.TYPE_PROP),
            properties={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class Shard:
    """
    A partition of a collection.

    Attributes:
        name: Shard id (e.g. "shard1")
        range: Hash range, e.g. "80000000-ffffffff"
        state: Shard state (active, construction, inactive, ...)
        parent: Parent shard id when created by a split
        replicas: Replica name -> Replica
        properties: Remaining properties, kept verbatim
    """
    name: str
    range: Optional[str] = None
    state: Optional[str] = None
    parent: Optional[str] = None
    replicas: Dict[str, Replica] = field(default_factory=dict)
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.properties)
        if self.range is not None:
            data[paths.RANGE_PROP] = self.range
        if self.state is not None:
            data[paths.STATE_PROP] = self.state
        if self.parent is not None:
            data[paths.PARENT_PROP] = self.parent
        data[paths.REPLICAS_PROP] = {
            name: replica.to_dict() for name, replica in self.replicas.items()
        }
        return data

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "Shard":
        known = {
            paths.RANGE_PROP, paths.STATE_PROP, paths.PARENT_PROP,
            paths.SHARD_PARENT_PROP, paths.REPLICAS_PROP,
        }
        replicas = data.get(paths.REPLICAS_PROP) or {}
        return cls(
            name=name,
            range=data.get(paths.RANGE_PROP),
            state=data.get(paths.STATE_PROP),
            parent=data.get(paths.PARENT_PROP, data.get(paths.SHARD_PARENT_PROP)),
            replicas={
                replica_name: Replica.from_dict(replica_name, replica)
                for replica_name, replica in replicas.items()
            },
            properties={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class CollectionState:
    """
    Canonical state of one collection.

    Attributes:
        name: Collection name
        shards: Shard id -> Shard
        num_shards: Shard count (published numShards, else len(shards))
        replication_factor: Replication factor when published
        max_shards_per_node: Max shards per node when published
        router: Router name (e.g. "compositeId")
        properties: Remaining collection properties, kept verbatim
    """
    name: str
    shards: Dict[str, Shard] = field(default_factory=dict)
    num_shards: int = 0
    replication_factor: Optional[int] = None
    max_shards_per_node: Optional[int] = None
    router: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    def replicas(self) -> List[Replica]:
        """All replicas of all shards, in document order."""
        return [
            replica
            for shard in self.shards.values()
            for replica in shard.replicas.values()
        ]

    def active_replicas(self) -> List[Replica]:
        return [replica for replica in self.replicas() if replica.is_active]

    def leaders(self) -> List[Replica]:
        return [replica for replica in self.replicas() if replica.is_leader]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the canonical (current-generation) document shape."""
        data = dict(self.properties)
        data[paths.SHARDS_PROP] = {
            name: shard.to_dict() for name, shard in self.shards.items()
        }
        data[paths.NUM_SHARDS_PROP] = self.num_shards
        if self.replication_factor is not None:
            data[paths.REPLICATION_FACTOR] = self.replication_factor
        if self.max_shards_per_node is not None:
            data[paths.MAX_SHARDS_PER_NODE] = self.max_shards_per_node
        if self.router is not None:
            data[paths.ROUTER_PROP] = {"name": self.router}
        return data

    @classmethod
    def from_dict(
        cls,
        name: str,
        data: Dict[str, Any],
        state_format: StateFormat = StateFormat.CURRENT,
    ) -> "CollectionState":
        """
        Create from a collection document of either generation.

        Args:
            name: Collection name
            data: Collection document body
            state_format: Generation the document was written in
        """
        known = {
            paths.SHARDS_PROP, paths.NUM_SHARDS_PROP, paths.REPLICATION_FACTOR,
            paths.MAX_SHARDS_PER_NODE, paths.ROUTER_PROP,
        }
        shards = {
            shard_name: Shard.from_dict(shard_name, shard)
            for shard_name, shard in (data.get(paths.SHARDS_PROP) or {}).items()
        }

        router = data.get(paths.ROUTER_PROP)
        if isinstance(router, dict):
            router = router.get("name")
        elif router is not None:
            router = str(router)
        elif state_format is StateFormat.LEGACY:
            # Old releases omitted the router and routed by compositeId.
            router = DEFAULT_LEGACY_ROUTER

        num_shards = _to_int(data.get(paths.NUM_SHARDS_PROP))

        return cls(
            name=name,
            shards=shards,
            num_shards=num_shards if num_shards is not None else len(shards),
            replication_factor=_to_int(data.get(paths.REPLICATION_FACTOR)),
            max_shards_per_node=_to_int(data.get(paths.MAX_SHARDS_PER_NODE)),
            router=router,
            properties={k: v for k, v in data.items() if k not in known},
        )


def parse_state_document(
    document: Dict[str, Any],
    state_format: StateFormat,
) -> Dict[str, CollectionState]:
    """
    Parse a ``{<collection>: {...}}`` state document.

    Args:
        document: Decoded JSON document
        state_format: Generation the document was written in

    Returns:
        Collection name -> CollectionState
    """
    return {
        name: CollectionState.from_dict(name, body, state_format)
        for name, body in document.items()
        if isinstance(body, dict)
    }


# Logical field names of a snapshot, shared with the external cache.
SNAPSHOT_FIELDS = (
    "aliases",
    "collections",
    "legacyCollectionStates",
    "collectionStates",
    "clusterState",
    "collectionShardLeaders",
    "liveNodes",
    "clusterProperties",
    "securityData",
)


@dataclass(frozen=True)
class ClusterSnapshot:
    """
    Immutable, point-in-time view of the cluster.

    A snapshot is never modified after it is published; updates build a
    new one with :func:`dataclasses.replace`.

    Attributes:
        aliases: Alias name -> target collection
        collections: Collection names under /collections
        legacy_collection_states: Entries from /clusterstate.json
        collection_states: Entries from per-collection state.json
        cluster_state: Merged view of both sources
        collection_shard_leaders: Collection -> shard -> leader info ({} if none)
        live_nodes: Registered live node ids
        cluster_properties: /clusterprops.json contents
        security_data: /security.json contents
        roles: /roles.json contents
    """
    aliases: Dict[str, str] = field(default_factory=dict)
    collections: List[str] = field(default_factory=list)
    legacy_collection_states: Dict[str, CollectionState] = field(default_factory=dict)
    collection_states: Dict[str, CollectionState] = field(default_factory=dict)
    cluster_state: Dict[str, CollectionState] = field(default_factory=dict)
    collection_shard_leaders: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    live_nodes: List[str] = field(default_factory=list)
    cluster_properties: Dict[str, Any] = field(default_factory=dict)
    security_data: Dict[str, Any] = field(default_factory=dict)
    roles: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary keyed by logical field name.

        The result shares no mutable state with the snapshot.
        """
        def states(values: Dict[str, CollectionState]) -> Dict[str, Any]:
            return copy.deepcopy({name: state.to_dict() for name, state in values.items()})

        return {
            "aliases": dict(self.aliases),
            "collections": list(self.collections),
            "legacyCollectionStates": states(self.legacy_collection_states),
            "collectionStates": states(self.collection_states),
            "clusterState": states(self.cluster_state),
            "collectionShardLeaders": copy.deepcopy(self.collection_shard_leaders),
            "liveNodes": list(self.live_nodes),
            "clusterProperties": copy.deepcopy(self.cluster_properties),
            "securityData": copy.deepcopy(self.security_data),
            "roles": copy.deepcopy(self.roles),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusterSnapshot":
        """
        Create from :meth:`to_dict` output.

        Raises:
            KeyError: If any logical field is missing
        """
        missing = [name for name in SNAPSHOT_FIELDS if name not in data]
        if missing:
            raise KeyError(f"Snapshot is missing fields: {', '.join(missing)}")

        return cls(
            aliases=dict(data["aliases"] or {}),
            collections=list(data["collections"] or []),
            legacy_collection_states=parse_state_document(
                data["legacyCollectionStates"] or {}, StateFormat.CURRENT
            ),
            collection_states=parse_state_document(
                data["collectionStates"] or {}, StateFormat.CURRENT
            ),
            cluster_state=parse_state_document(
                data["clusterState"] or {}, StateFormat.CURRENT
            ),
            collection_shard_leaders=dict(data["collectionShardLeaders"] or {}),
            live_nodes=list(data["liveNodes"] or []),
            cluster_properties=dict(data["clusterProperties"] or {}),
            security_data=dict(data["securityData"] or {}),
            roles=dict(data.get("roles") or {}),
        )
