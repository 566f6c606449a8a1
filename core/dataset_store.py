"""
Dataset Store

Holds the named datasets of the last parsed table, the active dataset, the
two independently selected channels (A and B) and their derived series.

Every write builds a new immutable DatasetSnapshot and swaps it in with a
single assignment, so readers never see a half-applied update (for example a
channel list that belongs to different rows).
"""

import json
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict

from core.channels import (
    discover_channels,
    choose_preferred_channel,
    choose_secondary_channel,
    choose_preferred_dataset,
)
from core.models import Dataset, DatasetCollection, Series, EMPTY_SERIES
from core.series import build_series

logger = logging.getLogger("dataset_store")


@dataclass(frozen=True)
class DatasetSnapshot:
    datasets: DatasetCollection = field(default_factory=dict)
    active: Optional[str] = None
    channels: List[str] = field(default_factory=list)
    channel_a: Optional[str] = None
    channel_b: Optional[str] = None
    series_a: Series = EMPTY_SERIES
    series_b: Series = EMPTY_SERIES

    @property
    def names(self) -> List[str]:
        return list(self.datasets.keys())

    @property
    def rows(self) -> Optional[Dataset]:
        if self.active is None:
            return None
        return self.datasets.get(self.active)

    @property
    def series_duration(self) -> float:
        """Duration of the reference series (channel A)."""
        return self.series_a.duration

    @property
    def is_empty(self) -> bool:
        return not self.datasets


EMPTY_SNAPSHOT = DatasetSnapshot()


class DatasetStore:
    """
    Single-writer store for the dataset collection and channel selections.
    """

    def __init__(self, strict_series: bool = False):
        self._snapshot: DatasetSnapshot = EMPTY_SNAPSHOT
        self.strict_series = strict_series

    @property
    def snapshot(self) -> DatasetSnapshot:
        return self._snapshot

    @property
    def series_duration(self) -> float:
        return self._snapshot.series_duration

    def _build_series(self, rows: Optional[Dataset], channel: Optional[str]) -> Series:
        if not rows or channel is None:
            return EMPTY_SERIES
        return build_series(rows, channel, sort_by_time=self.strict_series)

    def _activate(self, base: DatasetSnapshot, name: Optional[str]) -> DatasetSnapshot:
        """Derive channels, selections and series for dataset ``name``."""
        rows = base.datasets.get(name) if name is not None else None
        channels = discover_channels(rows)

        channel_a = base.channel_a if base.channel_a in channels else choose_preferred_channel(channels)
        if base.channel_b in channels:
            channel_b = base.channel_b
        else:
            channel_b = choose_secondary_channel(channels, channel_a)

        return replace(
            base,
            active=name,
            channels=channels,
            channel_a=channel_a,
            channel_b=channel_b,
            series_a=self._build_series(rows, channel_a),
            series_b=self._build_series(rows, channel_b),
        )

    def replace_all(self, datasets: DatasetCollection, active: Optional[str] = None) -> DatasetSnapshot:
        """
        Replace the collection wholesale (new upload / session load).

        The active dataset defaults to the preferred sheet name.
        """
        datasets = dict(datasets)
        if active is None or active not in datasets:
            active = choose_preferred_dataset(list(datasets.keys()))

        # Selections carry over only if the new data still has those channels
        base = DatasetSnapshot(
            datasets=datasets,
            channel_a=self._snapshot.channel_a,
            channel_b=self._snapshot.channel_b,
        )
        self._snapshot = self._activate(base, active)
        logger.info(
            f"Loaded {len(datasets)} dataset(s), active={active!r}, "
            f"{len(self._snapshot.channels)} channels"
        )
        return self._snapshot

    def clear(self) -> None:
        """Reset to the empty state (failed load)."""
        self._snapshot = EMPTY_SNAPSHOT

    def select_dataset(self, name: str) -> DatasetSnapshot:
        if name not in self._snapshot.datasets:
            raise KeyError(f"Unknown dataset: {name}")
        self._snapshot = self._activate(self._snapshot, name)
        return self._snapshot

    def select_channel_a(self, channel: Optional[str]) -> DatasetSnapshot:
        snap = self._snapshot
        if channel is not None and channel not in snap.channels:
            raise KeyError(f"Unknown channel: {channel}")
        self._snapshot = replace(
            snap,
            channel_a=channel,
            series_a=self._build_series(snap.rows, channel),
        )
        return self._snapshot

    def select_channel_b(self, channel: Optional[str]) -> DatasetSnapshot:
        snap = self._snapshot
        if channel is not None and channel not in snap.channels:
            raise KeyError(f"Unknown channel: {channel}")
        self._snapshot = replace(
            snap,
            channel_b=channel,
            series_b=self._build_series(snap.rows, channel),
        )
        return self._snapshot

    def export_json(self) -> Optional[str]:
        """Active dataset as a JSON array of row objects (None when there are no rows)."""
        rows = self._snapshot.rows
        if not rows:
            return None
        return json.dumps(rows)

    def export_filename(self) -> str:
        stem = re.sub(r"\s+", "_", self._snapshot.active or "data")
        return f"{stem}.json"

    def get_state(self) -> Dict:
        snap = self._snapshot
        return {
            "datasets": snap.names,
            "active": snap.active,
            "row_count": len(snap.rows or []),
            "channels": list(snap.channels),
            "channel_a": snap.channel_a,
            "channel_b": snap.channel_b,
            "series_a_points": len(snap.series_a),
            "series_b_points": len(snap.series_b),
            "series_duration": snap.series_duration,
        }
