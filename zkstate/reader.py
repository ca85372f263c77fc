"""
Read-optimized view of a SolrCloud cluster.

:class:`ZkStateReader` bootstraps a :class:`ClusterSnapshot` (from the
external cache when possible, otherwise from ZooKeeper) and answers
topology queries against it. Optional watches refresh parts of the
snapshot when ZooKeeper reports a change.

Every update builds a new snapshot and swaps it in as a whole. Queries
read the current snapshot once and never observe a partial update.
"""

import copy
import threading
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from zkstate.cache.bridge import CacheBridge
from zkstate.cache.store import CacheStore
from zkstate.coordination import paths
from zkstate.coordination.client import CoordinationClient, KazooCoordinationClient
from zkstate.endpoint import CollectionEndpoint
from zkstate.exceptions import (
    CollectionNotFound,
    CoordinationUnavailable,
    WatchRegistrationFailure,
    ZkStateError,
)
from zkstate.state.loader import SnapshotLoader
from zkstate.state.models import ClusterSnapshot, CollectionState
from zkstate.utils.config import ReaderConfig
from zkstate.utils.logging import get_logger
from zkstate.watch.registry import WatchRegistry

logger = get_logger(__name__)


class ReaderState(str, Enum):
    """Reader lifecycle."""

    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"
    FAILED = "failed"


class SectionState(str, Enum):
    """Freshness of one part of the snapshot."""

    READY = "ready"
    STALE = "stale"
    REFRESHING = "refreshing"


LIVE_NODES_SECTION = "live_nodes"
ALIASES_SECTION = "aliases"
COLLECTIONS_SECTION = "collections"
CLUSTER_STATE_SECTION = "cluster_state"


def collection_section(collection: str) -> str:
    return f"collection:{collection}"


class ZkStateReader:
    """
    Cluster state reader.

    Responsibilities:
    - Bootstrap the snapshot (cache first, then ZooKeeper)
    - Resolve collection names through aliases
    - Derive active and leader base URIs per collection
    - Keep parts of the snapshot fresh through watches
    """

    def __init__(
        self,
        config: ReaderConfig,
        client: Optional[CoordinationClient] = None,
        cache: Optional[CacheStore] = None,
    ):
        """
        Initialize the reader and bootstrap the cluster snapshot.

        Args:
            config: Reader configuration
            client: Coordination client; a kazoo client is created and
                owned by the reader when omitted
            cache: External cache store for snapshot persistence

        Raises:
            ConfigurationError: If the configuration is invalid
            PathNotFound: If a required document is missing
            CoordinationUnavailable: If ZooKeeper cannot be read
        """
        self.config = config
        self.state = ReaderState.UNINITIALIZED

        self._owns_client = client is None
        self.client: CoordinationClient = client or KazooCoordinationClient(
            config.connection_string,
            timeout=config.timeout,
        )
        self.loader = SnapshotLoader(self.client)
        self.watches = WatchRegistry(self.client)
        self.cache_bridge: Optional[CacheBridge] = None
        if cache is not None:
            self.cache_bridge = CacheBridge(
                cache,
                key=config.cache_key,
                expiration=config.cache_expiration,
            )

        self._snapshot = ClusterSnapshot()
        self._sections: Dict[str, SectionState] = {}
        self._sections_lock = threading.Lock()
        # Serializes snapshot writers; readers never take it.
        self._write_lock = threading.RLock()

        self._bootstrap()

        if config.watch:
            self.watch_all()

    @classmethod
    def from_hosts(
        cls,
        zk_hosts: List[str],
        chroot: str = "",
        cache: Optional[CacheStore] = None,
        cache_expiration: Optional[int] = None,
        **kwargs: Any,
    ) -> "ZkStateReader":
        """Create a reader from a host list."""
        config = ReaderConfig(
            zk_hosts=zk_hosts,
            chroot=chroot,
            cache_expiration=cache_expiration,
            **kwargs,
        )
        return cls(config, cache=cache)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _bootstrap(self) -> None:
        self.state = ReaderState.BOOTSTRAPPING

        if self.cache_bridge is not None and self.cache_bridge.try_restore():
            self._snapshot = self.cache_bridge.restored
            self.state = ReaderState.READY
            logger.info("Reader ready", source="cache")
            return

        try:
            self._connect()
            snapshot = self.loader.load_all()
        except ZkStateError as e:
            self._fail(e)
            raise
        except Exception as e:
            self._fail(e)
            raise CoordinationUnavailable(str(e)) from e

        self._snapshot = snapshot
        self.state = ReaderState.READY

        if self.cache_bridge is not None:
            self.cache_bridge.persist(snapshot)

        logger.info("Reader ready", source="zookeeper")

    def _fail(self, error: Exception) -> None:
        self.state = ReaderState.FAILED
        logger.error("Bootstrap failed", error=str(error), error_type=type(error).__name__)
        self._disconnect()

    def _connect(self) -> None:
        if self._owns_client:
            self.client.start()

    def _disconnect(self) -> None:
        if self._owns_client:
            self.client.stop()

    def reload(self) -> ClusterSnapshot:
        """
        Re-read the whole cluster and publish the result.

        Returns:
            The new snapshot
        """
        with self._write_lock:
            # A reader restored from the cache has not connected yet.
            self._connect()
            snapshot = self.loader.load_all()
            self._snapshot = snapshot
            with self._sections_lock:
                self._sections = {name: SectionState.READY for name in self._sections}

            if self.cache_bridge is not None:
                self.cache_bridge.persist(snapshot)

        return snapshot

    def close(self) -> None:
        """Cancel watches and release the ZooKeeper connection."""
        self.watches.close()
        self._disconnect()

    def __enter__(self) -> "ZkStateReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> ClusterSnapshot:
        """The currently published snapshot."""
        return self._snapshot

    def get_collection_aliases(self) -> Dict[str, str]:
        return dict(self._snapshot.aliases)

    def get_collection_list(self) -> List[str]:
        return list(self._snapshot.collections)

    def get_cluster_state(self) -> Dict[str, CollectionState]:
        """Merged state of every collection, copied out of the snapshot."""
        return copy.deepcopy(self._snapshot.cluster_state)

    def get_cluster_properties(self) -> Dict[str, Any]:
        return copy.deepcopy(self._snapshot.cluster_properties)

    def get_live_nodes(self) -> List[str]:
        return list(self._snapshot.live_nodes)

    def get_security_data(self) -> Dict[str, Any]:
        return copy.deepcopy(self._snapshot.security_data)

    def get_roles(self) -> Dict[str, Any]:
        return copy.deepcopy(self._snapshot.roles)

    def get_collection_shard_leaders(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        return copy.deepcopy(self._snapshot.collection_shard_leaders)

    def resolve_collection_name(self, name: str) -> str:
        """
        Return the real collection name for a collection or alias.

        Aliases resolve a single hop; an alias target is never looked up
        as an alias again.

        Raises:
            CollectionNotFound: If the name is neither a collection nor an alias
        """
        return self._resolve(self._snapshot, name)

    def get_collection_state(self, collection: str) -> CollectionState:
        """
        Return the state of a collection.

        Raises:
            CollectionNotFound: If the name does not resolve, or the
                collection never published a state document
        """
        snapshot = self._snapshot
        return copy.deepcopy(self._state_of(snapshot, self._resolve(snapshot, collection)))

    def get_endpoints(self) -> Dict[str, CollectionState]:
        """State of every known collection."""
        snapshot = self._snapshot
        return copy.deepcopy({
            collection: self._state_of(snapshot, collection)
            for collection in snapshot.collections
        })

    def get_active_base_uris(self, collection: Optional[str] = None) -> Dict[str, str]:
        """
        Base URIs of active replicas.

        Keys are "<node_name>_<collection>". A URI appears at most once
        among the values even when several replicas share a node.

        Args:
            collection: Collection or alias; None scans every collection

        Returns:
            Replica key -> base URI. Empty when states exist but no
            replica is active.

        Raises:
            CollectionNotFound: If the collection has no state, or the
                whole cluster has no published state when scanning all
        """
        snapshot = self._snapshot

        if collection is not None:
            resolved = self._resolve(snapshot, collection)
            states = {resolved: self._state_of(snapshot, resolved)}
        else:
            states = snapshot.cluster_state
            if not states:
                raise CollectionNotFound(None, "The cluster state is empty.")

        return self._collect_base_uris(states, lambda replica: replica.is_active)

    def get_collection_shard_leaders_base_uri(self, collection: str) -> Dict[str, str]:
        """
        Base URIs of the shard leaders of a collection.

        Raises:
            CollectionNotFound: If the collection does not resolve or has no state
        """
        snapshot = self._snapshot
        resolved = self._resolve(snapshot, collection)
        states = {resolved: self._state_of(snapshot, resolved)}
        return self._collect_base_uris(states, lambda replica: replica.is_leader)

    def get_collection_endpoint(self, collection: str) -> CollectionEndpoint:
        """
        Return a lazy endpoint handle for a collection.

        Raises:
            CollectionNotFound: If the name does not resolve
        """
        return CollectionEndpoint(self.resolve_collection_name(collection), self)

    def _resolve(self, snapshot: ClusterSnapshot, name: str) -> str:
        if name in snapshot.collections:
            return name

        target = snapshot.aliases.get(name)
        if target is not None:
            return target

        raise CollectionNotFound(name, f"Solr collection with name '{name}' not found.")

    def _state_of(self, snapshot: ClusterSnapshot, collection: str) -> CollectionState:
        state = snapshot.cluster_state.get(collection)
        if state is None:
            raise CollectionNotFound(collection)
        return state

    def _collect_base_uris(
        self,
        states: Dict[str, CollectionState],
        include: Callable[[Any], bool],
    ) -> Dict[str, str]:
        uris: Dict[str, str] = {}
        seen = set()

        for collection_id, state in states.items():
            for replica in state.replicas():
                if not include(replica) or replica.base_url in seen:
                    continue
                seen.add(replica.base_url)
                uris[f"{replica.node_name}_{collection_id}"] = replica.base_url

        return uris

    # ------------------------------------------------------------------
    # Watches
    # ------------------------------------------------------------------

    def section_state(self, section: str) -> SectionState:
        """Freshness of a snapshot section (see *_SECTION constants)."""
        with self._sections_lock:
            return self._sections.get(section, SectionState.READY)

    def watch_live_nodes(self) -> Optional[str]:
        return self._watch(paths.LIVE_NODES_ZKNODE, self._on_live_nodes_changed, children=True)

    def watch_aliases(self) -> Optional[str]:
        return self._watch(paths.ALIASES, self._on_aliases_changed)

    def watch_collection_list(self) -> Optional[str]:
        return self._watch(paths.COLLECTIONS_ZKNODE, self._on_collection_list_changed, children=True)

    def watch_cluster_state(self) -> Optional[str]:
        """Watch the legacy /clusterstate.json document."""
        return self._watch(paths.CLUSTER_STATE, self._on_cluster_state_changed)

    def watch_collection(self, collection: str) -> Optional[str]:
        """
        Watch a collection's state.json.

        Raises:
            CollectionNotFound: If the name does not resolve
            WatchRegistrationFailure: If the collection has no state.json
        """
        resolved = self.resolve_collection_name(collection)
        return self._watch(paths.collection_state_path(resolved), self._on_collection_changed)

    def watch_all(self) -> int:
        """
        Arm every refresh watch that applies to this cluster.

        Paths that cannot be watched (e.g. no legacy document on a new
        cluster) are skipped.

        Returns:
            Number of watches armed
        """
        registrations: List[Callable[[], Optional[str]]] = [
            self.watch_live_nodes,
            self.watch_aliases,
            self.watch_collection_list,
            self.watch_cluster_state,
        ]
        for collection in self._snapshot.collections:
            registrations.append(lambda c=collection: self.watch_collection(c))

        armed = 0
        for register in registrations:
            try:
                if register() is not None:
                    armed += 1
            except WatchRegistrationFailure as e:
                logger.debug("Watch not armed", path=e.path, reason=str(e))

        logger.info("Armed refresh watches", count=armed)
        return armed

    def unwatch_all(self) -> None:
        for path in self.watches.paths():
            self.watches.cancel(path)

    def _watch(
        self,
        path: str,
        callback: Callable[[str], Any],
        children: bool = False,
        missing_ok: bool = False,
    ) -> Optional[str]:
        self._connect()
        return self.watches.watch(path, callback, children=children, missing_ok=missing_ok)

    def _on_live_nodes_changed(self, path: str) -> bool:
        return self._refresh(
            LIVE_NODES_SECTION,
            lambda snapshot: replace(snapshot, live_nodes=self.loader.read_live_nodes()),
        )

    def _on_aliases_changed(self, path: str) -> bool:
        return self._refresh(
            ALIASES_SECTION,
            lambda snapshot: replace(snapshot, aliases=self.loader.read_aliases()),
        )

    def _on_cluster_state_changed(self, path: str) -> bool:
        def build(snapshot: ClusterSnapshot) -> ClusterSnapshot:
            legacy = self.loader.read_legacy_states()
            return replace(
                snapshot,
                legacy_collection_states=legacy,
                cluster_state=self.loader.merger.merge(legacy, snapshot.collection_states),
            )

        return self._refresh(CLUSTER_STATE_SECTION, build)

    def _on_collection_list_changed(self, path: str) -> bool:
        added: List[str] = []
        removed: List[str] = []

        def build(snapshot: ClusterSnapshot) -> ClusterSnapshot:
            collections = self.loader.read_collection_list()
            current = set(collections)
            added[:] = [c for c in collections if c not in snapshot.collections]
            removed[:] = [c for c in snapshot.collections if c not in current]

            states = {
                name: state
                for name, state in snapshot.collection_states.items()
                if name in current
            }
            leaders = {
                name: shard_leaders
                for name, shard_leaders in snapshot.collection_shard_leaders.items()
                if name in current
            }
            for collection in added:
                states.update(self.loader.read_collection_state(collection))
                leaders[collection] = self.loader.read_shard_leaders(collection)

            return replace(
                snapshot,
                collections=collections,
                collection_states=states,
                collection_shard_leaders=leaders,
                cluster_state=self.loader.merger.merge(snapshot.legacy_collection_states, states),
            )

        if not self._refresh(COLLECTIONS_SECTION, build):
            return False

        self._sync_collection_watches(added, removed)
        return True

    def _sync_collection_watches(self, added: List[str], removed: List[str]) -> None:
        """Follow state.json of new collections and drop removed ones."""
        for collection in removed:
            self.watches.cancel(paths.collection_state_path(collection))
            with self._sections_lock:
                self._sections.pop(collection_section(collection), None)

        for collection in added:
            # Solr creates state.json after the collection node.
            state_path = paths.collection_state_path(collection)
            try:
                self._watch(state_path, self._on_collection_changed, missing_ok=True)
                # Written between the list read and arming the watch.
                if collection not in self._snapshot.collection_states and self.client.exists(state_path):
                    self._on_collection_changed(state_path)
            except ZkStateError as e:
                logger.warning("Collection watch not armed", collection=collection, error=str(e))

    def _on_collection_changed(self, path: str) -> bool:
        # /collections/<name>/state.json
        collection = path.split("/")[2]
        if collection not in self._snapshot.collections:
            logger.debug("Ignoring state of unlisted collection", collection=collection)
            return False

        def build(snapshot: ClusterSnapshot) -> ClusterSnapshot:
            states = {
                name: state
                for name, state in snapshot.collection_states.items()
                if name != collection
            }
            states.update(self.loader.read_collection_state(collection))

            leaders = dict(snapshot.collection_shard_leaders)
            leaders[collection] = self.loader.read_shard_leaders(collection)

            return replace(
                snapshot,
                collection_states=states,
                collection_shard_leaders=leaders,
                cluster_state=self.loader.merger.merge(snapshot.legacy_collection_states, states),
            )

        return self._refresh(collection_section(collection), build)

    def _refresh(
        self,
        section: str,
        build: Callable[[ClusterSnapshot], ClusterSnapshot],
    ) -> bool:
        """
        Rebuild one section and publish the resulting snapshot.

        On failure the section stays STALE and the previous snapshot
        keeps serving queries.

        Returns:
            True if a new snapshot was published
        """
        self._set_section(section, SectionState.STALE)

        with self._write_lock:
            self._set_section(section, SectionState.REFRESHING)

            published = False
            try:
                snapshot = build(self._snapshot)
                self._snapshot = snapshot
                published = True
            except ZkStateError as e:
                logger.error("Refresh failed", section=section, error=str(e))
                return False
            finally:
                self._set_section(section, SectionState.READY if published else SectionState.STALE)

            # Cache writes follow publish order.
            if self.cache_bridge is not None:
                self.cache_bridge.persist(snapshot)

        logger.info("Refreshed cluster state", section=section)
        return True

    def _set_section(self, section: str, state: SectionState) -> None:
        with self._sections_lock:
            self._sections[section] = state

    def __repr__(self) -> str:
        return (
            f"ZkStateReader(hosts='{self.config.connection_string}', "
            f"state={self.state.value}, collections={len(self._snapshot.collections)})"
        )
