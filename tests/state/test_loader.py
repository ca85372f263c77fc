"""Tests for the bootstrap snapshot loader."""

import pytest

from zkstate.exceptions import CoordinationUnavailable, PathNotFound, StateDecodeError
from zkstate.state.loader import SnapshotLoader, decode_json


class TestDecodeJson:
    """Test decode_json."""

    def test_empty_payload(self):
        """Test empty and whitespace payloads decode to {}."""
        assert decode_json("/security.json", b"") == {}
        assert decode_json("/security.json", b"  \n") == {}

    def test_null_payload(self):
        """Test a JSON null decodes to {}."""
        assert decode_json("/clusterprops.json", b"null") == {}

    def test_object_payload(self):
        """Test a JSON object is returned as a dict."""
        assert decode_json("/clusterprops.json", b'{"urlScheme": "https"}') == {"urlScheme": "https"}

    def test_invalid_json(self):
        """Test malformed JSON raises StateDecodeError."""
        with pytest.raises(StateDecodeError) as exc_info:
            decode_json("/aliases.json", b"{not json")

        assert exc_info.value.path == "/aliases.json"

    def test_non_object(self):
        """Test a JSON array is rejected."""
        with pytest.raises(StateDecodeError):
            decode_json("/aliases.json", b"[1, 2]")


class TestSnapshotLoader:
    """Test SnapshotLoader."""

    @pytest.fixture
    def loader(self, cluster):
        """Create loader over the sample cluster."""
        return SnapshotLoader(cluster)

    def test_load_all(self, loader):
        """Test a full bootstrap of the sample cluster."""
        snapshot = loader.load_all()

        assert snapshot.live_nodes == ["h1:8983_solr", "h2:8983_solr"]
        assert snapshot.aliases == {"prod": "products"}
        assert snapshot.collections == ["logs", "products"]
        assert set(snapshot.legacy_collection_states) == {"logs", "products"}
        assert set(snapshot.collection_states) == {"products"}
        assert set(snapshot.cluster_state) == {"logs", "products"}
        assert snapshot.cluster_properties == {"urlScheme": "http"}
        assert snapshot.security_data == {}
        assert snapshot.roles == {}

    def test_per_collection_state_wins(self, loader):
        """Test the merged view uses state.json over the legacy entry."""
        snapshot = loader.load_all()

        products = snapshot.cluster_state["products"]
        assert products is snapshot.collection_states["products"]
        assert len(products.active_replicas()) == 3

    def test_legacy_collection_normalized(self, loader):
        """Test a legacy-only collection is exposed in canonical form."""
        snapshot = loader.load_all()

        logs = snapshot.cluster_state["logs"]
        assert logs.router == "implicit"
        assert logs.num_shards == 1
        assert logs.leaders()[0].node_name == "h2:8983_solr"

    def test_shard_leaders(self, loader):
        """Test leader info per shard, empty where no leader is elected."""
        snapshot = loader.load_all()

        leaders = snapshot.collection_shard_leaders
        assert leaders["products"]["shard1"]["core"] == "products_shard1_replica_n1"
        assert leaders["products"]["shard2"] == {}
        assert leaders["logs"] == {}

    def test_read_order(self, cluster, loader):
        """Test documents are read in bootstrap order."""
        loader.load_all()

        reads = [path for op, path in cluster.reads if op in ("get", "get_children")]
        assert reads[:3] == ["/live_nodes", "/aliases.json", "/collections"]
        assert reads.index("/clusterstate.json") < reads.index("/collections/products/state.json")
        assert reads[-2:] == ["/clusterprops.json", "/security.json"]

    def test_roles_read_when_present(self, cluster, loader):
        """Test /roles.json is exposed when it exists."""
        cluster.set_json("/roles.json", {"overseer": ["h1:8983_solr"]})

        assert loader.load_all().roles == {"overseer": ["h1:8983_solr"]}

    def test_without_legacy_document(self, cluster, loader):
        """Test a cluster without /clusterstate.json loads."""
        cluster.delete("/clusterstate.json")

        snapshot = loader.load_all()

        assert snapshot.legacy_collection_states == {}
        assert set(snapshot.cluster_state) == {"products"}

    @pytest.mark.parametrize("path", [
        "/live_nodes",
        "/aliases.json",
        "/collections",
        "/security.json",
    ])
    def test_required_document_missing(self, cluster, loader, path):
        """Test a missing required document raises PathNotFound."""
        cluster.delete(path)

        with pytest.raises(PathNotFound) as exc_info:
            loader.load_all()

        assert exc_info.value.path == path

    def test_optional_documents_missing(self, cluster, loader):
        """Test optional documents degrade to empty."""
        cluster.delete("/clusterprops.json")
        cluster.delete("/collections/products/state.json")

        snapshot = loader.load_all()

        assert snapshot.cluster_properties == {}
        assert snapshot.collection_states == {}
        assert set(snapshot.cluster_state) == {"logs", "products"}

    def test_decode_error_propagates(self, cluster, loader):
        """Test a corrupt document fails the load."""
        cluster.create("/aliases.json", b"{broken")

        with pytest.raises(StateDecodeError):
            loader.load_all()

    def test_unavailable(self, cluster, loader):
        """Test connection loss fails the load."""
        cluster.unavailable = True

        with pytest.raises(CoordinationUnavailable):
            loader.load_all()
