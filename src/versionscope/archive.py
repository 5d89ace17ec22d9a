"""Unpacking of downloaded archives.

When an archive holds a single top-level directory, its contents are
placed directly in the destination (``node-v20.5.0-linux-x64/bin`` lands
as ``{dest}/bin``).
"""

import logging
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path

from .utils import move_files

logger = logging.getLogger(__name__)

_TAR_SUFFIXES = {
    ".tar.gz": "r:gz",
    ".tgz": "r:gz",
    ".tar.xz": "r:xz",
    ".txz": "r:xz",
    ".tar.bz2": "r:bz2",
    ".tbz2": "r:bz2",
    ".tar": "r:",
}


def _tar_mode(path: Path) -> str | None:
    name = path.name.lower()
    for suffix, mode in _TAR_SUFFIXES.items():
        if name.endswith(suffix):
            return mode
    return None


def is_archive(path: Path) -> bool:
    return _tar_mode(path) is not None or path.name.lower().endswith(".zip")


def _extract_tar(path: Path, dest: Path, mode: str) -> None:
    with tarfile.open(path, mode) as tar:
        tar.extractall(dest, filter="data")


def _extract_zip(path: Path, dest: Path) -> None:
    with zipfile.ZipFile(path) as archive:
        for info in archive.infolist():
            extracted = Path(archive.extract(info, dest))
            # Restore the executable bits stored by unix zip tools
            mode = (info.external_attr >> 16) & 0o777
            if mode and not info.is_dir():
                extracted.chmod(mode)


def decompress(path: Path, dest: Path) -> None:
    """Unpack ``path`` into ``dest``.

    Raises:
        ValueError: If the file type is not a supported archive
        tarfile.TarError, zipfile.BadZipFile: If the archive is corrupt
    """
    mode = _tar_mode(path)
    if mode is None and not path.name.lower().endswith(".zip"):
        raise ValueError(f"unsupported archive type: {path.name}")

    dest.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=".unpack-", dir=dest.parent))
    try:
        if mode is not None:
            _extract_tar(path, staging, mode)
        else:
            _extract_zip(path, staging)

        entries = list(staging.iterdir())
        if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
            logger.debug(f"Stripping root folder {entries[0].name} from {path.name}")
            move_files(entries[0], dest)
        else:
            move_files(staging, dest)
    finally:
        shutil.rmtree(staging, ignore_errors=True)
