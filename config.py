"""
Motion Sync Viewer - Configuration
Central configuration for playback, data extraction and asset endpoints.
"""

import os
from pathlib import Path

# ============================================================================
# PLAYBACK CONFIGURATION
# ============================================================================

# Fixed frame rate used for snap-to-frames quantization
FPS = 120

# Playback speed multiplier bounds
SPEED_MIN = 0.1
SPEED_MAX = 2.0

# Upper bound for the wall time consumed by a single tick (tab suspension, GC stalls)
MAX_TICK_ELAPSED_SECONDS = 0.05

# Cadence of the server-side host frame source (frames per second)
HOST_FRAME_RATE = float(os.environ.get("VIEWER_HOST_FRAME_RATE", "60"))

# ============================================================================
# TABLE / CHANNEL CONFIGURATION
# ============================================================================

# Per-row timestamp / index fields, never plotted
RESERVED_FIELDS = ("t", "time", "frame")

# Time keys in priority order
TIME_KEYS = ("t", "time")

# Keys probed (in order) for the row array of a raw JSON document
JSON_ARRAY_KEYS = ("data", "frames", "samples", "points", "series")

# Dataset name used for raw JSON documents
JSON_DATASET_NAME = "Data"

# Sheet preference rules, evaluated in order (case-insensitive)
PREFERRED_SHEET_PATTERNS = (
    r"joint.*position",
    r"baseball.*data",
)

# Channel preference rules, evaluated in order (case-insensitive)
PREFERRED_CHANNEL_PATTERNS = (
    r"Wrist.*Velocity",
    r"Velocity",
    r"Rotation",
)

# ============================================================================
# ASSET ENDPOINTS
# ============================================================================

# Suggested players (the list grows as manifests load)
DEFAULT_PLAYERS = ["Pete Alonso"]

# Where player manifests and session assets are served from
DATA_BASE_URL = os.environ.get("VIEWER_DATA_BASE_URL", "http://localhost:8000/")
DATA_ROOT = "data"

# Local directory mounted by the web server under /data (if present)
DATA_DIR = os.environ.get("VIEWER_DATA_DIR", str(Path(__file__).parent / "data"))

# Filenames used when neither the session nor the manifest names one
FALLBACK_ANIMATION_FILE = "EXPORT.fbx"
FALLBACK_TABLE_FILE = "Kinematic_Data (1).xlsx"

HTTP_TIMEOUT_SECONDS = float(os.environ.get("VIEWER_HTTP_TIMEOUT", "10"))

# ============================================================================
# PREFERENCES
# ============================================================================

PREFERENCES_PATH = os.environ.get(
    "VIEWER_PREFERENCES_PATH",
    str(Path.home() / ".motion-sync-viewer" / "preferences.json"),
)
