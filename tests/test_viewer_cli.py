from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import collector
import viewer_cli
from core.errors import ManifestFetchError
from core.models import PlayerManifest


def test_inspect_summarizes_datasets_and_channels(tmp_path, capsys):
    path = tmp_path / "pitch.csv"
    path.write_text("frame,RightWrist/Velocity_X,Hip/Rotation_Z\n0,1,5\n60,2,6\n120,3,7\n")

    assert viewer_cli.main(["inspect", str(path)]) == 0

    out = capsys.readouterr().out
    assert "pitch.csv (csv)" in out
    assert "Active dataset: pitch" in out
    assert "Channel A: RightWrist/Velocity_X  (3 pts, 1.000s)" in out
    assert "Channel B: Hip/Rotation_Z" in out
    assert "[RightWrist / Velocity X]" in out


def test_inspect_reports_unparseable_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")

    assert viewer_cli.main(["inspect", str(path)]) == 1


def test_manifest_prints_resolved_assets(monkeypatch, capsys):
    async def fake_fetch_manifest(player, base_url=None):
        return PlayerManifest.from_dict(
            {"sessions": ["s1", "s2"], "defaultSession": "s2", "fbx": "swing.fbx"},
            player=player,
        )

    monkeypatch.setattr(collector, "fetch_manifest", fake_fetch_manifest)

    code = viewer_cli.main(["manifest", "--player", "Pete Alonso", "--base-url", "http://assets.test/"])

    assert code == 0
    out = capsys.readouterr().out
    assert "Session: s2" in out
    assert "http://assets.test/data/Pete%20Alonso/s2/swing.fbx" in out
    assert "Kinematic_Data (1).xlsx" in out


def test_manifest_failure_exit_code(monkeypatch):
    async def failing_fetch_manifest(player, base_url=None):
        raise ManifestFetchError("manifest 404", status_code=404)

    monkeypatch.setattr(collector, "fetch_manifest", failing_fetch_manifest)

    assert viewer_cli.main(["manifest", "--player", "Nobody"]) == 1


def test_no_command_prints_help(capsys):
    assert viewer_cli.main([]) == 1
    assert "Motion Sync Viewer CLI" in capsys.readouterr().out
