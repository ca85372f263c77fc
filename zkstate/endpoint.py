"""
Lazy endpoint handles for a collection.

A :class:`CollectionEndpoint` keeps only the collection name and the
reader. Every call recomputes endpoints from the reader's current
snapshot, so a handle obtained before a topology change still routes to
the nodes that are active now.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from zkstate.reader import ZkStateReader

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class Endpoint:
    """
    One concrete node endpoint.

    Attributes:
        key: Replica key ("<node_name>_<collection>")
        base_uri: Node base URI, e.g. "http://h1:8983/solr"
        scheme: URI scheme
        host: Host name
        port: Port (scheme default when the URI has none)
        path: Base path, e.g. "/solr"
        collection: Collection the endpoint serves
    """
    key: str
    base_uri: str
    scheme: str
    host: str
    port: int
    path: str
    collection: str

    @property
    def collection_url(self) -> str:
        """URL of the collection on this node."""
        return f"{self.base_uri.rstrip('/')}/{self.collection}"

    @classmethod
    def from_base_uri(cls, key: str, base_uri: str, collection: str) -> "Endpoint":
        parts = urlsplit(base_uri)
        scheme = parts.scheme or "http"
        return cls(
            key=key,
            base_uri=base_uri,
            scheme=scheme,
            host=parts.hostname or "",
            port=parts.port or _DEFAULT_PORTS.get(scheme, 80),
            path=parts.path,
            collection=collection,
        )


class CollectionEndpoint:
    """Builds endpoints for one collection from the reader's live view."""

    def __init__(self, collection: str, reader: "ZkStateReader"):
        self.collection = collection
        self._reader = reader

    def base_uris(self) -> Dict[str, str]:
        """Active replica base URIs, keyed by replica key."""
        return self._reader.get_active_base_uris(self.collection)

    def leader_base_uris(self) -> Dict[str, str]:
        """Shard leader base URIs, keyed by replica key."""
        return self._reader.get_collection_shard_leaders_base_uri(self.collection)

    def endpoints(self) -> List[Endpoint]:
        return [
            Endpoint.from_base_uri(key, uri, self.collection)
            for key, uri in self.base_uris().items()
        ]

    def leader_endpoints(self) -> List[Endpoint]:
        return [
            Endpoint.from_base_uri(key, uri, self.collection)
            for key, uri in self.leader_base_uris().items()
        ]

    def __repr__(self) -> str:
        return f"CollectionEndpoint(collection='{self.collection}')"
