"""Znode locations and JSON property names of the SolrCloud layout."""

COLLECTIONS_ZKNODE = "/collections"
LIVE_NODES_ZKNODE = "/live_nodes"
ALIASES = "/aliases.json"
CLUSTER_STATE = "/clusterstate.json"
CLUSTER_PROPS = "/clusterprops.json"
SECURITY_CONF = "/security.json"
ROLES = "/roles.json"

COLLECTION_STATE = "state.json"
SHARD_LEADERS_ZKNODE = "leaders"
LEADER_NODE = "leader"

# Property names inside state documents
BASE_URL_PROP = "base_url"
NODE_NAME_PROP = "node_name"
CORE_NAME_PROP = "core"
STATE_PROP = "state"
TYPE_PROP = "type"
LEADER_PROP = "leader"
SHARDS_PROP = "shards"
REPLICAS_PROP = "replicas"
RANGE_PROP = "range"
PARENT_PROP = "parent"
SHARD_PARENT_PROP = "shard_parent"
NUM_SHARDS_PROP = "numShards"
REPLICATION_FACTOR = "replicationFactor"
MAX_SHARDS_PER_NODE = "maxShardsPerNode"
ROUTER_PROP = "router"
ALIAS_COLLECTION_PROP = "collection"


def collection_path(collection: str) -> str:
    return f"{COLLECTIONS_ZKNODE}/{collection}"


def collection_state_path(collection: str) -> str:
    return f"{COLLECTIONS_ZKNODE}/{collection}/{COLLECTION_STATE}"


def shard_leaders_path(collection: str) -> str:
    return f"{COLLECTIONS_ZKNODE}/{collection}/{SHARD_LEADERS_ZKNODE}"


def shard_leader_path(collection: str, shard: str) -> str:
    return f"{shard_leaders_path(collection)}/{shard}/{LEADER_NODE}"
