"""Access to the ZooKeeper coordination store."""

from zkstate.coordination.client import CoordinationClient, KazooCoordinationClient

__all__ = ["CoordinationClient", "KazooCoordinationClient"]
