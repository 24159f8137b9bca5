from __future__ import annotations

import os
import sys
from pathlib import Path

APP_DIR_NAME = "worktray"
LAUNCH_AGENT_LABEL = "com.worktray.agent"


def data_directory() -> Path:
    override = os.environ.get("WORKTRAY_HOME")
    if override:
        return Path(override)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    if sys.platform == "win32":
        local_appdata = os.environ.get("LOCALAPPDATA")
        base = Path(local_appdata) if local_appdata else Path.home() / "AppData" / "Local"
        return base / APP_DIR_NAME
    xdg_data = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg_data) if xdg_data else Path.home() / ".local" / "share"
    return base / APP_DIR_NAME


def database_path(base: Path | None = None) -> Path:
    return (base or data_directory()) / "worktray.sqlite3"


def ensure_directories(base: Path | None = None) -> Path:
    directory = base or data_directory()
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def launch_agent_path() -> Path:
    return Path.home() / "Library" / "LaunchAgents" / f"{LAUNCH_AGENT_LABEL}.plist"
