"""
Viewer Models

Core data structures shared by the clock, store and load pipeline:
- Row / Dataset / DatasetCollection: parsed table shapes
- Series: time-normalized samples for one channel
- PlayerManifest / SessionAssets: per-player session descriptors
- ClockState: playback clock snapshot
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from config import FALLBACK_ANIMATION_FILE, FALLBACK_TABLE_FILE

# A row maps field name -> number / string (absent fields are simply missing)
Row = Dict[str, Any]
Dataset = List[Row]
DatasetCollection = Dict[str, Dataset]


@dataclass(frozen=True)
class SeriesPoint:
    """One normalized sample: seconds since the first kept sample, and its value."""
    relative_time: float
    value: float

    def to_dict(self) -> Dict:
        return {"t": self.relative_time, "value": self.value}


@dataclass(frozen=True)
class Series:
    """
    Time-normalized sample sequence for one channel.
    The first point always sits at relative_time 0; duration is the last point's time.
    """
    channel: Optional[str] = None
    points: List[SeriesPoint] = field(default_factory=list)
    duration: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.points

    def __len__(self) -> int:
        return len(self.points)

    def to_dict(self) -> Dict:
        return {
            "channel": self.channel,
            "duration": self.duration,
            "points": [p.to_dict() for p in self.points],
        }


EMPTY_SERIES = Series()


@dataclass(frozen=True)
class SessionAssets:
    """Resolved asset filenames (and URLs) for one player session."""
    player: str
    session: str
    animation_file: str
    table_file: str
    animation_url: Optional[str] = None
    table_url: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "player": self.player,
            "session": self.session,
            "animation_file": self.animation_file,
            "table_file": self.table_file,
            "animation_url": self.animation_url,
            "table_url": self.table_url,
        }


def _optional_str(payload: Dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"manifest {key!r} must be a string")
    return value


@dataclass
class PlayerManifest:
    """
    Per-player descriptor listing available sessions and default asset filenames.
    """
    player: str
    sessions: List[str] = field(default_factory=list)
    default_session: Optional[str] = None
    animation_file: Optional[str] = None
    table_file: Optional[str] = None
    files: Dict[str, Dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any], player: Optional[str] = None) -> "PlayerManifest":
        """Build from the manifest document; raises ValueError on a non-object payload."""
        if not isinstance(payload, dict):
            raise ValueError("manifest document must be a JSON object")

        sessions = payload.get("sessions") or []
        if not isinstance(sessions, list):
            raise ValueError("manifest 'sessions' must be a list")

        raw_files = payload.get("files") or {}
        if not isinstance(raw_files, dict):
            raise ValueError("manifest 'files' must be an object")

        files: Dict[str, Dict[str, str]] = {}
        for name, entry in raw_files.items():
            if isinstance(entry, dict):
                files[str(name)] = {
                    k: str(v) for k, v in entry.items()
                    if k in ("fbx", "excel") and v
                }

        return cls(
            player=str(payload.get("player") or player or ""),
            sessions=[str(s) for s in sessions],
            default_session=_optional_str(payload, "defaultSession"),
            animation_file=_optional_str(payload, "fbx"),
            table_file=_optional_str(payload, "excel"),
            files=files,
        )

    def pick_session(self, previous: Optional[str] = None) -> Optional[str]:
        """Keep the previous session if still listed, else the default, else the first."""
        if previous and previous in self.sessions:
            return previous
        if self.default_session and self.default_session in self.sessions:
            return self.default_session
        return self.sessions[0] if self.sessions else None

    def resolve_assets(self, session: str) -> SessionAssets:
        """Per-session override -> top-level default -> hardcoded fallback."""
        override = self.files.get(session, {})
        return SessionAssets(
            player=self.player,
            session=session,
            animation_file=override.get("fbx") or self.animation_file or FALLBACK_ANIMATION_FILE,
            table_file=override.get("excel") or self.table_file or FALLBACK_TABLE_FILE,
        )

    def to_dict(self) -> Dict:
        return {
            "player": self.player,
            "defaultSession": self.default_session,
            "sessions": list(self.sessions),
            "fbx": self.animation_file,
            "excel": self.table_file,
            "files": {k: dict(v) for k, v in self.files.items()},
        }


@dataclass
class ClockState:
    """Snapshot of the playback clock."""
    current_time: float = 0.0
    playing: bool = False
    speed: float = 1.0
    snap_to_frames: bool = True
    animation_duration: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "current_time": self.current_time,
            "playing": self.playing,
            "speed": self.speed,
            "snap_to_frames": self.snap_to_frames,
            "animation_duration": self.animation_duration,
        }
