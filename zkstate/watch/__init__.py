"""Persistent subscriptions over one-shot ZooKeeper watches."""

from zkstate.watch.registry import WatchEntry, WatchRegistry, WatchState

__all__ = ["WatchEntry", "WatchRegistry", "WatchState"]
