"""Combines legacy and per-collection state into one cluster view."""

from typing import Dict

from zkstate.state.models import CollectionState
from zkstate.utils.logging import get_logger

logger = get_logger(__name__)


class StateMerger:
    """
    Merges the two state sources into a single view.

    Per-collection documents are newer than the legacy shared document,
    so they win on every key collision. Collections only present in the
    legacy document are carried over unchanged. The result's keys are
    the union of both inputs.
    """

    def merge(
        self,
        legacy: Dict[str, CollectionState],
        per_collection: Dict[str, CollectionState],
    ) -> Dict[str, CollectionState]:
        """
        Merge legacy and per-collection states.

        Args:
            legacy: Collections parsed from /clusterstate.json
            per_collection: Collections parsed from state.json documents

        Returns:
            New mapping; the inputs are not modified
        """
        merged = dict(legacy)
        merged.update(per_collection)

        overridden = sorted(set(legacy) & set(per_collection))
        if overridden:
            logger.debug(
                "Per-collection state overrides legacy state",
                collections=overridden,
            )

        return merged
