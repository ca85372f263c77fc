"""Tests for state merging."""

import pytest

from zkstate.state.merger import StateMerger
from zkstate.state.models import CollectionState, StateFormat


def _state(name, base_url, state="active", state_format=StateFormat.CURRENT):
    return CollectionState.from_dict(
        name,
        {
            "shards": {
                "s1": {
                    "replicas": {
                        "r1": {"base_url": base_url, "node_name": "n1", "state": state},
                    },
                },
            },
        },
        state_format,
    )


class TestStateMerger:
    """Test StateMerger."""

    @pytest.fixture
    def merger(self):
        """Create merger."""
        return StateMerger()

    def test_per_collection_wins(self, merger):
        """Test per-collection entries override legacy entries."""
        legacy = {"coll2": _state("coll2", "http://old:8983", "down", StateFormat.LEGACY)}
        per_collection = {"coll2": _state("coll2", "http://new:8983")}

        merged = merger.merge(legacy, per_collection)

        assert merged["coll2"] is per_collection["coll2"]
        assert merged["coll2"].replicas()[0].base_url == "http://new:8983"

    def test_legacy_only_carried_over(self, merger):
        """Test collections only in the legacy document are kept."""
        legacy = {"coll1": _state("coll1", "http://h1:8983", state_format=StateFormat.LEGACY)}

        merged = merger.merge(legacy, {})

        assert merged == legacy
        assert merged["coll1"].replicas()[0].is_active

    def test_key_set_is_union(self, merger):
        """Test the result holds every collection of both inputs."""
        legacy = {
            "a": _state("a", "http://h1", state_format=StateFormat.LEGACY),
            "b": _state("b", "http://h1", state_format=StateFormat.LEGACY),
        }
        per_collection = {"b": _state("b", "http://h2"), "c": _state("c", "http://h3")}

        merged = merger.merge(legacy, per_collection)

        assert set(merged) == {"a", "b", "c"}

    def test_idempotent(self, merger):
        """Test merging the result again with the same input changes nothing."""
        legacy = {
            "a": _state("a", "http://h1", state_format=StateFormat.LEGACY),
            "b": _state("b", "http://h1", state_format=StateFormat.LEGACY),
        }
        per_collection = {"b": _state("b", "http://h2")}

        once = merger.merge(legacy, per_collection)
        twice = merger.merge(once, per_collection)

        assert twice == once

    def test_inputs_not_modified(self, merger):
        """Test the inputs are left untouched."""
        legacy = {"a": _state("a", "http://h1", state_format=StateFormat.LEGACY)}
        per_collection = {"a": _state("a", "http://h2")}

        merger.merge(legacy, per_collection)

        assert legacy["a"].replicas()[0].base_url == "http://h1"
        assert list(per_collection) == ["a"]
