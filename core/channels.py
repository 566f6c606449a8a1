"""
Channel Extractor

Discovers plottable numeric channels in a dataset and picks sensible
defaults by naming heuristics.

Preference rules are an ordered list of predicates; the first rule that
matches any channel wins and the first matching channel (in list order) is
returned. There is no scoring.
"""

import math
import re
from typing import Optional, List, Iterable, Callable, Sequence

from config import (
    RESERVED_FIELDS,
    PREFERRED_CHANNEL_PATTERNS,
    PREFERRED_SHEET_PATTERNS,
)
from core.models import Dataset

NamePredicate = Callable[[str], bool]


def is_finite_number(value) -> bool:
    """True for int/float values that are finite (bools are not numbers here)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    return False


def _pattern_rule(pattern: str) -> NamePredicate:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda name: compiled.search(name) is not None


CHANNEL_RULES: List[NamePredicate] = [_pattern_rule(p) for p in PREFERRED_CHANNEL_PATTERNS]
SHEET_RULES: List[NamePredicate] = [_pattern_rule(p) for p in PREFERRED_SHEET_PATTERNS]


def _first_by_rules(names: Sequence[str], rules: Iterable[NamePredicate]) -> Optional[str]:
    for rule in rules:
        for name in names:
            if rule(name):
                return name
    return names[0] if names else None


def discover_channels(rows: Optional[Dataset]) -> List[str]:
    """
    Collect every field holding a finite number in at least one row.

    Reserved time/index fields are excluded. Result is lexicographically
    sorted and duplicate-free.
    """
    found = set()
    for row in rows or []:
        if not isinstance(row, dict):
            continue
        for key, value in row.items():
            if key in RESERVED_FIELDS or key in found:
                continue
            if is_finite_number(value):
                found.add(key)
    return sorted(found)


def choose_preferred_channel(channels: Sequence[str]) -> Optional[str]:
    """Wrist velocity, then any velocity, then any rotation, then the first channel."""
    return _first_by_rules(list(channels), CHANNEL_RULES)


def choose_secondary_channel(channels: Sequence[str], primary: Optional[str] = None) -> Optional[str]:
    """
    Pick channel B: the first channel that is not the preferred one.

    Falls back to the preferred channel when it is the only one.
    """
    channels = list(channels)
    first = primary if primary is not None else choose_preferred_channel(channels)
    for name in channels:
        if name != first:
            return name
    return first


def choose_preferred_dataset(names: Sequence[str]) -> Optional[str]:
    """Joint positions sheet, then baseball data sheet, then the first sheet."""
    return _first_by_rules(list(names), SHEET_RULES)


def pretty_label(channel: str) -> str:
    """'body/RightWrist/Velocity_X' -> 'RightWrist / Velocity X'."""
    parts = [p for p in channel.split("/") if p]
    tail = " / ".join(parts[-2:])
    return (tail or channel).replace("_", " ")
