from __future__ import annotations
import json
import logging
from pathlib import Path
import os
import sys
from typing import Any

logger = logging.getLogger(__name__)

APP_NAME = "StudyPlanner"
DATA_DIR_ENV = "STUDY_PLANNER_DATA_DIR"


def get_data_dir() -> Path:
    """
    Directory holding local app data. STUDY_PLANNER_DATA_DIR wins,
    otherwise the per-OS user data location.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        base = Path(override).expanduser()
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support" / APP_NAME
    elif sys.platform.startswith("win"):
        roaming = os.environ.get("APPDATA")
        base = Path(roaming) / APP_NAME if roaming else Path.home() / "AppData" / "Roaming" / APP_NAME
    else:
        base = Path.home() / ".local" / "share" / "study-planner"

    base.mkdir(parents=True, exist_ok=True)
    return base


def data_path(filename: str | Path) -> Path:
    """
    Resolve a file path inside the app data directory.
    """
    return get_data_dir() / Path(filename)


def _backup_file(path: Path, content: str) -> None:
    backup = path.with_suffix(path.suffix + ".bak")
    try:
        backup.write_text(content, encoding="utf-8")
    except OSError:
        # The reset still goes ahead without a backup.
        logger.warning("Could not write backup %s", backup)


def load_json(path: Path | str, default: Any = None) -> Any:
    """
    Load JSON from path with safety:
    - If missing: return default
    - If empty or invalid: write .bak and reset to default
    """
    path = Path(path)
    fallback = {} if default is None else default

    if not path.exists():
        return fallback

    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError:
        logger.warning("Could not read %s, using defaults", path)
        return fallback

    text = raw_text.strip()
    if not text:
        _backup_file(path, raw_text)
        save_json(path, fallback)
        return fallback

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Corrupted JSON in %s, backed up and reset", path)
        _backup_file(path, raw_text)
        save_json(path, fallback)
        return fallback


def save_json(path: Path | str, payload: Any) -> None:
    """Write payload next to path first, then swap it in so readers never see half a file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(path.name + ".tmp")
    with staging.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, ensure_ascii=False, indent=2)
    os.replace(staging, path)
