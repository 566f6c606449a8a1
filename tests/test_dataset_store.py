import json
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.dataset_store import DatasetStore, EMPTY_SNAPSHOT


def _rows(*channels, n=3):
    return [
        {"t": i * 0.5, **{c: float(i + k) for k, c in enumerate(channels)}}
        for i in range(n)
    ]


def test_replace_all_picks_preferred_sheet_and_channels():
    store = DatasetStore()
    snap = store.replace_all({
        "Summary": _rows("Speed"),
        "Joint Positions": _rows("Hip/Rotation_Z", "RightWrist/Velocity_X", "Alpha"),
    })

    assert snap.active == "Joint Positions"
    assert snap.channels == ["Alpha", "Hip/Rotation_Z", "RightWrist/Velocity_X"]
    assert snap.channel_a == "RightWrist/Velocity_X"
    assert snap.channel_b == "Alpha"
    assert snap.series_a.channel == "RightWrist/Velocity_X"
    assert snap.series_duration == pytest.approx(1.0)
    assert store.series_duration == pytest.approx(1.0)


def test_replace_all_honours_explicit_active_dataset():
    store = DatasetStore()
    snap = store.replace_all({"A": _rows("x"), "B": _rows("y")}, active="B")
    assert snap.active == "B"
    assert snap.channel_a == "y"


def test_selections_survive_reload_when_channels_still_exist():
    store = DatasetStore()
    store.replace_all({"Data": _rows("Alpha", "Beta", "Gamma")})
    store.select_channel_a("Gamma")
    store.select_channel_b("Beta")

    snap = store.replace_all({"Data": _rows("Alpha", "Beta", "Gamma", n=5)})
    assert (snap.channel_a, snap.channel_b) == ("Gamma", "Beta")

    snap = store.replace_all({"Data": _rows("Alpha", "Delta")})
    assert snap.channel_a == "Alpha"
    assert snap.channel_b == "Delta"


def test_switching_dataset_recomputes_channels_atomically():
    store = DatasetStore()
    store.replace_all({"One": _rows("a1", "a2"), "Two": _rows("b1")})
    before = store.snapshot

    after = store.select_dataset("Two")

    assert before.active == "One"
    assert before.channels == ["a1", "a2"]
    assert after.active == "Two"
    assert after.channels == ["b1"]
    assert after.channel_a == "b1"
    assert after.channel_b == "b1"


def test_unknown_selection_raises_and_leaves_state_untouched():
    store = DatasetStore()
    store.replace_all({"Data": _rows("Alpha")})
    snap = store.snapshot

    with pytest.raises(KeyError):
        store.select_dataset("Nope")
    with pytest.raises(KeyError):
        store.select_channel_a("Nope")
    with pytest.raises(KeyError):
        store.select_channel_b("Nope")

    assert store.snapshot is snap


def test_channel_b_can_be_cleared():
    store = DatasetStore()
    store.replace_all({"Data": _rows("Alpha", "Beta")})

    snap = store.select_channel_b(None)

    assert snap.channel_b is None
    assert snap.series_b.is_empty


def test_empty_dataset_has_no_channels_and_zero_duration():
    store = DatasetStore()
    snap = store.replace_all({"Data": [{"t": 0, "label": "x"}]})

    assert snap.channels == []
    assert snap.channel_a is None
    assert snap.channel_b is None
    assert snap.series_duration == 0.0


def test_clear_resets_everything():
    store = DatasetStore()
    store.replace_all({"Data": _rows("Alpha")})

    store.clear()

    assert store.snapshot is EMPTY_SNAPSHOT
    assert store.snapshot.is_empty
    assert store.get_state()["channels"] == []


def test_strict_series_sorts_by_time():
    rows = [{"t": 0.0, "v": 1}, {"t": 1.0, "v": 2}, {"t": 0.5, "v": 3}]
    assert DatasetStore().replace_all({"D": rows}).series_duration == pytest.approx(0.5)
    assert DatasetStore(strict_series=True).replace_all({"D": rows}).series_duration == pytest.approx(1.0)


def test_export_active_dataset():
    store = DatasetStore()
    assert store.export_json() is None
    assert store.export_filename() == "data.json"

    rows = _rows("Alpha")
    store.replace_all({"Joint  Positions 2": rows})

    assert json.loads(store.export_json()) == rows
    assert store.export_filename() == "Joint_Positions_2.json"
