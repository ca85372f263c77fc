#!/usr/bin/env python3
"""
Read a SolrCloud cluster's topology and follow changes.

Requires a running ZooKeeper ensemble used by SolrCloud, e.g.:

    python examples/read_cluster_state.py zk1:2181,zk2:2181 /solr products
"""

import sys
import time

from zkstate import ZkStateReader
from zkstate.cache import InMemoryCacheStore
from zkstate.exceptions import CollectionNotFound
from zkstate.utils.logging import configure_logging


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        return 1

    zk_hosts = sys.argv[1].split(",")
    chroot = sys.argv[2] if len(sys.argv) > 2 else ""
    collection = sys.argv[3] if len(sys.argv) > 3 else None

    configure_logging(log_level="WARNING", log_format="console")

    print("=" * 60)
    print("zkstate - SolrCloud cluster state")
    print("=" * 60)

    cache = InMemoryCacheStore()

    with ZkStateReader.from_hosts(zk_hosts, chroot=chroot, cache=cache, cache_expiration=60) as reader:
        print(f"\nLive nodes: {', '.join(reader.get_live_nodes()) or '-'}")
        print(f"Collections: {', '.join(reader.get_collection_list()) or '-'}")
        for alias, target in sorted(reader.get_collection_aliases().items()):
            print(f"  alias {alias} -> {target}")

        if collection is None:
            return 0

        try:
            endpoint = reader.get_collection_endpoint(collection)
        except CollectionNotFound as e:
            print(f"\n{e}")
            return 1

        reader.watch_all()
        print(f"\nWatching '{endpoint.collection}' (Ctrl+C to stop)")

        try:
            while True:
                print("\nActive replicas:")
                for e in endpoint.endpoints():
                    print(f"  {e.key}: {e.collection_url}")
                print("Shard leaders:")
                for e in endpoint.leader_endpoints():
                    print(f"  {e.key}: {e.collection_url}")
                time.sleep(10)
        except KeyboardInterrupt:
            print("\nStopped")

    return 0


if __name__ == '__main__':
    sys.exit(main())
