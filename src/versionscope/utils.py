"""Utility functions for versionscope."""

import re
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Any


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries with overlay precedence.

    Recursively merges nested dictionaries. Non-dict values in overlay
    completely replace corresponding values in base.

    Args:
        base: Base dictionary
        overlay: Overlay dictionary (takes precedence)

    Returns:
        New merged dictionary (base and overlay are not modified)

    Examples:
        >>> base = {"proxy": {"enable": False, "url": ""}, "storage": {"sdk_path": ""}}
        >>> overlay = {"proxy": {"enable": True}}
        >>> deep_merge(base, overlay)
        {'proxy': {'enable': True, 'url': ''}, 'storage': {'sdk_path': ''}}

        >>> deep_merge({}, {"a": 1})
        {'a': 1}
    """
    result = base.copy()

    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def begin_of_today(now: datetime | None = None) -> int:
    """Return the unix timestamp of local midnight for the given day."""
    now = now or datetime.now()
    return int(now.replace(hour=0, minute=0, second=0, microsecond=0).timestamp())


def is_before_today(timestamp: int, now: datetime | None = None) -> bool:
    """Whether the calendar day of ``timestamp`` is earlier than today."""
    day = datetime.fromtimestamp(timestamp).date()
    today = (now or datetime.now()).date()
    return day < today


def unix_now() -> int:
    return int(time.time())


_VERSION_PART = re.compile(r"(\d+|[^\d.\-+_]+)")


def version_sort_key(version: str) -> tuple:
    """Sort key comparing numeric version components as numbers.

    ``"1.10.0"`` sorts after ``"1.9.2"``. Numeric parts sort before textual
    ones at the same position so ``"1.0.0"`` comes before ``"1.0.0-rc"``.
    """
    key = []
    for part in _VERSION_PART.findall(version):
        if part.isdigit():
            key.append((0, int(part), ""))
        else:
            key.append((1, 0, part))
    return tuple(key)


def move_files(src: Path, target_dir: Path) -> None:
    """Move a file, or the contents of a directory, into ``target_dir``."""
    target_dir.mkdir(parents=True, exist_ok=True)
    if src.is_dir():
        for child in src.iterdir():
            shutil.move(str(child), str(target_dir / child.name))
    else:
        shutil.move(str(src), str(target_dir / src.name))
