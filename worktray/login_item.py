from __future__ import annotations

import logging
import plistlib
import sys
from pathlib import Path

from .paths import LAUNCH_AGENT_LABEL, launch_agent_path

logger = logging.getLogger(__name__)


def launch_agent_definition(program: list[str] | None = None) -> dict[str, object]:
    arguments = program or [sys.executable, "-m", "worktray"]
    return {
        "Label": LAUNCH_AGENT_LABEL,
        "ProgramArguments": list(arguments),
        "RunAtLoad": True,
        "ProcessType": "Interactive",
    }


def set_launch_at_login(enabled: bool, agent_path: Path | None = None) -> bool:
    """Register or remove the login item. Returns False where unsupported."""
    if agent_path is None and sys.platform != "darwin":
        logger.warning("Launch at login is only supported on macOS")
        return False

    target = agent_path or launch_agent_path()
    if enabled:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as handle:
            plistlib.dump(launch_agent_definition(), handle)
        logger.info("Registered login item at %s", target)
    elif target.exists():
        target.unlink()
        logger.info("Removed login item at %s", target)
    return True


def is_launch_at_login_registered(agent_path: Path | None = None) -> bool:
    return (agent_path or launch_agent_path()).exists()


def sync_launch_at_login(enabled: bool, agent_path: Path | None = None) -> bool:
    """Bring the login item in line with the stored preference.

    Returns True when the item had to be written or removed.
    """
    if is_launch_at_login_registered(agent_path) == enabled:
        return False
    return set_launch_at_login(enabled, agent_path=agent_path)
