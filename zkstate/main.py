#!/usr/bin/env python3
"""
Command-line entry point for inspecting a SolrCloud cluster.

Usage:
    # Whole cluster state as JSON
    python -m zkstate.main --zk-hosts zk1:2181,zk2:2181 --chroot /solr

    # Active replica base URIs of one collection (or alias)
    python -m zkstate.main --zk-hosts zk1:2181 --show active --collection products
"""

import argparse
import json
import sys
from typing import Any, Optional

from zkstate.cache.redis_store import RedisCacheConfig, RedisCacheStore
from zkstate.exceptions import ZkStateError
from zkstate.reader import ZkStateReader
from zkstate.utils.config import Config, ReaderConfig
from zkstate.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='zkstate - inspect SolrCloud cluster state stored in ZooKeeper'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='YAML configuration file'
    )

    parser.add_argument(
        '--zk-hosts',
        type=str,
        default=None,
        help='Comma-separated ZooKeeper host:port pairs (overrides config)'
    )

    parser.add_argument(
        '--chroot',
        type=str,
        default=None,
        help='ZooKeeper chroot, e.g. /solr (overrides config)'
    )

    parser.add_argument(
        '--show',
        type=str,
        default='state',
        choices=['state', 'aliases', 'live-nodes', 'active', 'leaders'],
        help='What to print (default: state)'
    )

    parser.add_argument(
        '--collection',
        type=str,
        default=None,
        help='Collection or alias for state, active and leaders'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from config)'
    )

    return parser.parse_args(argv)


def render(reader: ZkStateReader, show: str, collection: Optional[str]) -> Any:
    """Build the JSON-friendly output for a --show choice."""
    if show == 'aliases':
        return reader.get_collection_aliases()
    if show == 'live-nodes':
        return reader.get_live_nodes()
    if show == 'active':
        return reader.get_active_base_uris(collection)
    if show == 'leaders':
        if collection is None:
            raise SystemExit("--show leaders requires --collection")
        return reader.get_collection_shard_leaders_base_uri(collection)

    if collection is not None:
        return reader.get_collection_state(collection).to_dict()
    return {
        name: state.to_dict()
        for name, state in reader.get_cluster_state().items()
    }


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    config = Config(args.config)
    if args.zk_hosts:
        config.set("zookeeper.hosts", [h.strip() for h in args.zk_hosts.split(",") if h.strip()])
    if args.chroot is not None:
        config.set("zookeeper.chroot", args.chroot)

    configure_logging(
        log_level=args.log_level or config.get("logging.level", "INFO"),
        log_format=config.get("logging.format", "json"),
        log_output="stderr",
    )

    try:
        reader_config = ReaderConfig.from_config(config)

        cache = None
        if cache_url := config.get("cache.url"):
            cache = RedisCacheStore(RedisCacheConfig(redis_url=cache_url))

        with ZkStateReader(reader_config, cache=cache) as reader:
            output = render(reader, args.show, args.collection)

    except ZkStateError as e:
        logger.error("Cannot read cluster state", error=str(e), error_type=type(e).__name__)
        return 1

    json.dump(output, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")
    return 0


if __name__ == '__main__':
    sys.exit(main())
