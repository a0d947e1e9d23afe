"""Application constants."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "Trajview"
WINDOW_TITLE = "Trajview"
DEFAULT_WINDOW_WIDTH = 1280
DEFAULT_WINDOW_HEIGHT = 860

PACKAGE_DIR = Path(__file__).resolve().parent
INDEX_PATH = PACKAGE_DIR / "web" / "index.html"

API_URL = "https://mdposit.mddbr.eu/api/rest/v1"
REQUEST_TIMEOUT = 60.0

MODEL_FORMAT = "pdb"
COORDINATE_FORMAT = "xtc"

# Seconds.
STRUCTURE_STALE_AFTER = 30 * 60
STRUCTURE_RETENTION = 5 * 60
TRAJECTORY_RETENTION = 60 * 60

FETCH_WORKERS = 4

TRAJECTORY_ERROR_FALLBACK = "Failed to load trajectory."
SURFACE_ERROR_FALLBACK = "Failed to render structure."
