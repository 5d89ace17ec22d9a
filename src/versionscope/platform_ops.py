"""Operating-system specific operations.

One implementation per platform is selected once by ``get_platform_ops``;
callers never branch on the OS themselves.
"""

import logging
import os
from abc import ABC
from abc import abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class PlatformOps(ABC):
    """Directory links and process inspection."""

    @abstractmethod
    def create_dir_link(self, target: Path, link: Path) -> None:
        """Create ``link`` pointing at the directory ``target``."""

    @abstractmethod
    def remove_dir_link(self, link: Path) -> None:
        """Remove the link itself, never the directory it points to."""

    @abstractmethod
    def is_dir_link(self, path: Path) -> bool:
        pass

    @abstractmethod
    def read_dir_link(self, link: Path) -> Path:
        pass

    @abstractmethod
    def is_process_alive(self, pid: int) -> bool:
        pass


class PosixOps(PlatformOps):
    """Symbolic links and signal-0 liveness checks."""

    def create_dir_link(self, target: Path, link: Path) -> None:
        os.symlink(target, link, target_is_directory=True)

    def remove_dir_link(self, link: Path) -> None:
        os.unlink(link)

    def is_dir_link(self, path: Path) -> bool:
        return path.is_symlink()

    def read_dir_link(self, link: Path) -> Path:
        return Path(os.readlink(link))

    def is_process_alive(self, pid: int) -> bool:
        if pid <= 0:
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            # Exists but belongs to another user
            return True
        return True


class WindowsOps(PlatformOps):
    """Directory junctions, which need no elevated privileges."""

    _STILL_ACTIVE = 259
    _PROCESS_QUERY_LIMITED_INFORMATION = 0x1000

    def create_dir_link(self, target: Path, link: Path) -> None:
        import _winapi

        _winapi.CreateJunction(str(Path(target).absolute()), str(link))

    def remove_dir_link(self, link: Path) -> None:
        # A junction is removed like an empty directory
        os.rmdir(link)

    def is_dir_link(self, path: Path) -> bool:
        return path.is_junction() or path.is_symlink()

    def read_dir_link(self, link: Path) -> Path:
        target = os.readlink(link)
        if target.startswith("\\\\?\\"):
            target = target[4:]
        return Path(target)

    def is_process_alive(self, pid: int) -> bool:
        import ctypes
        from ctypes import wintypes

        if pid <= 0:
            return False
        kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
        handle = kernel32.OpenProcess(self._PROCESS_QUERY_LIMITED_INFORMATION, False, pid)
        if not handle:
            return False
        try:
            exit_code = wintypes.DWORD()
            if not kernel32.GetExitCodeProcess(handle, ctypes.byref(exit_code)):
                return False
            return exit_code.value == self._STILL_ACTIVE
        finally:
            kernel32.CloseHandle(handle)


def get_platform_ops() -> PlatformOps:
    if os.name == "nt":
        return WindowsOps()
    return PosixOps()
