"""
Bootstrap reads of the cluster topology.

:class:`SnapshotLoader` walks the coordination store in a fixed order
and produces a :class:`ClusterSnapshot`. Reads are synchronous and
sequential because the per-collection reads depend on the collection
list.
"""

import json
import time
from typing import Any, Dict, List, Optional

from zkstate.coordination import paths
from zkstate.coordination.client import CoordinationClient
from zkstate.exceptions import PathNotFound, StateDecodeError
from zkstate.state.merger import StateMerger
from zkstate.state.models import (
    ClusterSnapshot,
    CollectionState,
    StateFormat,
    parse_state_document,
)
from zkstate.utils.logging import get_logger

logger = get_logger(__name__)


def decode_json(path: str, raw: bytes) -> Dict[str, Any]:
    """
    Decode a node payload into a JSON object.

    Empty payloads decode to an empty dict.

    Raises:
        StateDecodeError: If the payload is not a UTF-8 JSON object
    """
    if not raw or not raw.strip():
        return {}

    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise StateDecodeError(path, str(e)) from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise StateDecodeError(path, f"expected a JSON object, got {type(document).__name__}")

    return document


class SnapshotLoader:
    """
    Reads the full cluster topology from the coordination store.

    Required documents (live nodes, aliases, collection list, security
    data) raise :class:`PathNotFound` when missing. Documents that only
    exist on some cluster versions (legacy cluster state, per-collection
    state, shard leaders, cluster properties, roles) degrade to empty.
    """

    def __init__(
        self,
        client: CoordinationClient,
        merger: Optional[StateMerger] = None,
    ):
        """
        Initialize loader.

        Args:
            client: Coordination-store client
            merger: State merger (default: StateMerger())
        """
        self.client = client
        self.merger = merger or StateMerger()

    def load_all(self) -> ClusterSnapshot:
        """
        Perform the full bootstrap read.

        Returns:
            Snapshot of the whole cluster

        Raises:
            PathNotFound: If a required document is missing
            CoordinationUnavailable: If the store cannot be reached
            StateDecodeError: If a document is not valid JSON
        """
        start = time.monotonic()

        live_nodes = self.read_live_nodes()
        aliases = self.read_aliases()
        collections = self.read_collection_list()
        legacy_states = self.read_legacy_states()

        collection_states: Dict[str, CollectionState] = {}
        shard_leaders: Dict[str, Dict[str, Dict[str, Any]]] = {}

        for collection in collections:
            collection_states.update(self.read_collection_state(collection))
            shard_leaders[collection] = self.read_shard_leaders(collection)

        cluster_properties = self.read_cluster_properties()
        security_data = self.read_security_data()
        roles = self.read_roles()

        snapshot = ClusterSnapshot(
            aliases=aliases,
            collections=collections,
            legacy_collection_states=legacy_states,
            collection_states=collection_states,
            cluster_state=self.merger.merge(legacy_states, collection_states),
            collection_shard_leaders=shard_leaders,
            live_nodes=live_nodes,
            cluster_properties=cluster_properties,
            security_data=security_data,
            roles=roles,
        )

        logger.info(
            "Loaded cluster snapshot",
            collections=len(collections),
            live_nodes=len(live_nodes),
            legacy_collections=len(legacy_states),
            duration_ms=int((time.monotonic() - start) * 1000),
        )

        return snapshot

    def read_live_nodes(self) -> List[str]:
        return self._get_children(paths.LIVE_NODES_ZKNODE)

    def read_aliases(self) -> Dict[str, str]:
        """Read the alias map (alias -> collection)."""
        document = self._read_json(paths.ALIASES, required=True)
        aliases = document.get(paths.ALIAS_COLLECTION_PROP) or {}
        return {str(alias): str(target) for alias, target in aliases.items()}

    def read_collection_list(self) -> List[str]:
        return self._get_children(paths.COLLECTIONS_ZKNODE)

    def read_legacy_states(self) -> Dict[str, CollectionState]:
        """Read /clusterstate.json; newer clusters never populate it."""
        document = self._read_json(paths.CLUSTER_STATE, required=False)
        return parse_state_document(document, StateFormat.LEGACY)

    def read_collection_state(self, collection: str) -> Dict[str, CollectionState]:
        """
        Read a collection's state.json.

        Args:
            collection: Collection name

        Returns:
            Collections found in the document (empty when absent)
        """
        document = self._read_json(paths.collection_state_path(collection), required=False)
        return parse_state_document(document, StateFormat.CURRENT)

    def read_shard_leaders(self, collection: str) -> Dict[str, Dict[str, Any]]:
        """
        Read the leader-info blob of every shard of a collection.

        Args:
            collection: Collection name

        Returns:
            Shard id -> leader info; {} for shards without a leader
        """
        leaders_path = paths.shard_leaders_path(collection)
        if not self.client.exists(leaders_path):
            logger.debug("No leader election node", collection=collection)
            return {}

        try:
            shards = self.client.get_children(leaders_path)
        except PathNotFound:
            return {}

        leaders: Dict[str, Dict[str, Any]] = {}
        for shard in shards:
            leaders[shard] = self._read_json(
                paths.shard_leader_path(collection, shard),
                required=False,
            )
            if not leaders[shard]:
                logger.debug("Shard has no leader", collection=collection, shard=shard)

        return leaders

    def read_cluster_properties(self) -> Dict[str, Any]:
        return self._read_json(paths.CLUSTER_PROPS, required=False)

    def read_security_data(self) -> Dict[str, Any]:
        return self._read_json(paths.SECURITY_CONF, required=True)

    def read_roles(self) -> Dict[str, Any]:
        return self._read_json(paths.ROLES, required=False)

    def _read_json(self, path: str, required: bool) -> Dict[str, Any]:
        """
        Read and decode a JSON document.

        Args:
            path: Node path
            required: Raise when missing instead of returning {}

        Raises:
            PathNotFound: If required and the node does not exist
        """
        if not self.client.exists(path):
            if required:
                raise PathNotFound(path)
            logger.debug("Optional document absent", path=path)
            return {}

        try:
            raw = self.client.get(path)
        except PathNotFound:
            # Deleted between the existence check and the read.
            if required:
                raise
            return {}

        logger.debug("Read document", path=path, size=len(raw))
        return decode_json(path, raw)

    def _get_children(self, path: str) -> List[str]:
        if not self.client.exists(path):
            raise PathNotFound(path)
        return sorted(self.client.get_children(path))
