"""Idempotent maintenance of shim directory links."""

import logging
import os
from pathlib import Path

from .models import RuntimePackage
from .platform_ops import PlatformOps

logger = logging.getLogger(__name__)


def _normalize(path: Path, base: Path) -> str:
    if not path.is_absolute():
        path = base / path
    return os.path.normcase(os.path.abspath(path))


def _points_to(ops: PlatformOps, link: Path, target: Path) -> bool:
    return _normalize(ops.read_dir_link(link), link.parent) == _normalize(target, link.parent)


def ensure_dir_link(ops: PlatformOps, target: Path, link: Path) -> bool:
    """Point ``link`` at ``target``.

    An existing link that already resolves to ``target`` is left alone.

    Returns:
        True if the filesystem was changed
    """
    if ops.is_dir_link(link):
        if _points_to(ops, link, target):
            logger.debug(f"Link {link} already points to {target}")
            return False
        ops.remove_dir_link(link)
    elif link.exists():
        raise FileExistsError(f"{link} exists and is not a link")

    link.parent.mkdir(parents=True, exist_ok=True)
    ops.create_dir_link(target, link)
    logger.debug(f"Linked {link} -> {target}")
    return True


def remove_dir_link(ops: PlatformOps, link: Path) -> bool:
    """Remove ``link`` if it is a link. Returns whether anything was removed."""
    if not ops.is_dir_link(link):
        return False
    ops.remove_dir_link(link)
    logger.debug(f"Removed link {link}")
    return True


def create_links(ops: PlatformOps, package: RuntimePackage, link_dir: Path) -> int:
    """Link the main runtime and every addition into ``link_dir`` by name.

    Returns:
        Number of links created or replaced
    """
    changed = 0
    for runtime in package.runtimes:
        if ensure_dir_link(ops, runtime.path, link_dir / runtime.name):
            changed += 1
    return changed


def remove_links(ops: PlatformOps, package: RuntimePackage, link_dir: Path) -> int:
    """Remove the links ``create_links`` would have made.

    A link now pointing somewhere else (another version activated since) is
    kept.
    """
    removed = 0
    for runtime in package.runtimes:
        link = link_dir / runtime.name
        if not ops.is_dir_link(link):
            continue
        if not _points_to(ops, link, runtime.path):
            logger.debug(f"Keeping {link}: it no longer points to {runtime.label}")
            continue
        if remove_dir_link(ops, link):
            removed += 1
    return removed


def links_point_to(ops: PlatformOps, package: RuntimePackage, link_dir: Path) -> bool:
    """Whether every runtime of ``package`` is linked into ``link_dir``."""
    for runtime in package.runtimes:
        link = link_dir / runtime.name
        if not ops.is_dir_link(link) or not _points_to(ops, link, runtime.path):
            return False
    return True
