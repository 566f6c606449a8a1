"""
Series Builder

Turns one channel of a dataset into a (relative_time, value) sequence
starting at 0, plus the implied duration.

Time source, in priority order:
- the ``t`` field, if any row holds a finite number there
- the ``time`` field, likewise
- the row index: ``i / (n - 1)`` over ALL rows (dropped rows keep their slot)

Rows are kept in source order. Out-of-order timestamps are preserved as-is
unless ``sort_by_time`` is requested.
"""

import math
from typing import Optional, List, Tuple

from config import TIME_KEYS
from core.channels import is_finite_number
from core.models import Dataset, Series, SeriesPoint


def detect_time_key(rows: Dataset) -> Optional[str]:
    """Return the first time key with a finite value in some row, or None."""
    for key in TIME_KEYS:
        for row in rows:
            if isinstance(row, dict) and is_finite_number(row.get(key)):
                return key
    return None


def _coerce_time(value) -> Optional[float]:
    """Numbers pass through; numeric text is parsed. Anything else is unusable."""
    if is_finite_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def build_series(
    rows: Optional[Dataset],
    channel: Optional[str],
    sort_by_time: bool = False,
) -> Series:
    """
    Build the normalized series for ``channel``.

    Args:
        rows: Dataset rows in source order
        channel: Field to extract (None yields an empty series)
        sort_by_time: Opt-in strict mode; stable-sorts samples by time before
            normalizing instead of preserving source order

    Returns:
        Series with the first point at 0 and duration = last point's time
    """
    if not rows or channel is None:
        return Series(channel=channel)

    time_key = detect_time_key(rows)
    n = len(rows)
    raw: List[Tuple[float, float]] = []

    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            continue
        value = row.get(channel)
        if not is_finite_number(value):
            continue

        if time_key is not None:
            t = _coerce_time(row.get(time_key))
            if t is None:
                continue
        else:
            t = i / (n - 1) if n > 1 else 0.0

        raw.append((t, float(value)))

    if not raw:
        return Series(channel=channel)

    if sort_by_time:
        raw.sort(key=lambda p: p[0])

    t0 = raw[0][0]
    points = [SeriesPoint(relative_time=t - t0, value=v) for t, v in raw]
    duration = max(0.0, points[-1].relative_time)

    return Series(channel=channel, points=points, duration=duration)
