from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

from .tracker_types import ROOT, MarkerRecord
from .transforms import identity_transform

logger = logging.getLogger(__name__)


class MarkerRegistry:
    """Per-marker records for the running session, keyed by marker id."""

    def __init__(self):
        self._records: dict[int, MarkerRecord] = {}

    def __contains__(self, marker_id: int) -> bool:
        return marker_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[MarkerRecord]:
        for marker_id in sorted(self._records):
            yield self._records[marker_id]

    def ids(self) -> set[int]:
        return set(self._records)

    def get(self, marker_id: int) -> Optional[MarkerRecord]:
        return self._records.get(marker_id)

    def visible_records(self) -> list[MarkerRecord]:
        return [rec for rec in self if rec.visible]

    def reset_visibility(self) -> None:
        for rec in self._records.values():
            rec.visible = False

    def ensure_record(self, marker_id: int) -> MarkerRecord:
        rec = self._records.get(marker_id)
        if rec is None:
            rec = MarkerRecord(marker_id=marker_id)
            self._records[marker_id] = rec
            logger.debug("New marker with ID: %d found", marker_id)
        return rec

    def designate_anchor(self, marker_id: int) -> MarkerRecord:
        """Create the world-origin record: identity transforms, ROOT parent, visible."""
        rec = MarkerRecord(
            marker_id=marker_id,
            parent_id=ROOT,
            transform_to_parent=identity_transform(),
            transform_to_world=identity_transform(),
            world_resolved=True,
            visible=True,
        )
        self._records[marker_id] = rec
        return rec

    def mark_visible(self, marker_ids: Iterable[int]) -> None:
        # ids never registered stay unmarked; they get a record when ingested
        for marker_id in marker_ids:
            rec = self._records.get(marker_id)
            if rec is not None:
                rec.visible = True

    def prune(self, keep_id: Optional[int]) -> list[int]:
        """Rebuild the registry holding only ``keep_id``; returns the dropped ids."""
        dropped = sorted(mid for mid in self._records if mid != keep_id)
        kept = self._records.get(keep_id) if keep_id is not None else None
        self._records = {keep_id: kept} if kept is not None else {}
        return dropped
