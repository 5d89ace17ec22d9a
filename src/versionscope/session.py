"""Session directories and their daily cleanup."""

import logging
import shutil
from pathlib import Path

from .platform_ops import PlatformOps
from .utils import begin_of_today
from .utils import is_before_today

logger = logging.getLogger(__name__)

CLEANUP_FLAG_FILENAME = ".cleanup"


def parse_session_dir_name(name: str) -> tuple[int, int] | None:
    """Split ``{timestamp}-{pid}`` into its parts, or None if it is no session dir."""
    timestamp, sep, pid = name.partition("-")
    if not sep:
        return None
    try:
        return int(timestamp), int(pid)
    except ValueError:
        return None


def _swept_today(flag: Path) -> bool:
    try:
        stamp = int(flag.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return False
    return not is_before_today(stamp)


def clean_tmp(user_temp: Path, ops: PlatformOps, force: bool = False) -> list[Path]:
    """Remove stale session directories, at most once per calendar day.

    A directory is removed only when its day is before today and its pid no
    longer runs. Same-day directories of dead shells wait for the next day.

    Args:
        user_temp: Directory holding the session directories
        ops: Used for the process liveness check
        force: Ignore the once-per-day sentinel

    Returns:
        The removed directories
    """
    flag = user_temp / CLEANUP_FLAG_FILENAME
    if not force and _swept_today(flag):
        return []

    try:
        user_temp.mkdir(parents=True, exist_ok=True)
        flag.write_text(str(begin_of_today()), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to write cleanup flag {flag}: {e}")

    removed: list[Path] = []
    for entry in user_temp.iterdir():
        if not entry.is_dir() or entry.is_symlink():
            continue
        parsed = parse_session_dir_name(entry.name)
        if parsed is None:
            continue
        timestamp, pid = parsed
        if not is_before_today(timestamp) or ops.is_process_alive(pid):
            continue
        try:
            shutil.rmtree(entry)
        except OSError as e:
            logger.warning(f"Failed to remove session directory {entry}: {e}")
            continue
        logger.debug(f"Removed stale session directory {entry}")
        removed.append(entry)
    return removed
