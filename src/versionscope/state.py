"""Staleness cache for repeated environment computation.

A shell prompt hook asks for the environment on every prompt. As long as no
scope config changed, the last computed tool environment (variables and
managed PATH entries) is reused instead of calling plugin hooks again. The
system PATH and the shell syntax are applied by the caller on every prompt.
"""

import json
import logging
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .envs import UNSET
from .envs import Envs
from .envs import Paths
from .envs import Vars
from .exceptions import ConfigFileError
from .models import Scope
from .utils import unix_now

logger = logging.getLogger(__name__)

STATE_FILENAME = ".env-state.json"


def _mtime(path: Path) -> int | None:
    try:
        return int(path.stat().st_mtime)
    except FileNotFoundError:
        return None


class ConfigState:
    """Per-scope modification times of the config files plus the cached tool environment.

    The lock only guards access within this process; two processes sharing a
    state file race and the last save wins.

    Args:
        state_path: JSON file the state is persisted in
    """

    def __init__(self, state_path: Path):
        self.state_path = Path(state_path)
        self.last_check = 0
        self.mtimes: dict[Scope, int] = {}
        self.paths: dict[Scope, str] = {}
        self.cached_envs: Envs | None = None
        self._lock = threading.RLock()

    # ===== Persistence =====

    def load(self) -> None:
        """Load the state file; a missing or unreadable file starts empty."""
        with self._lock:
            if not self.state_path.exists():
                return
            try:
                data = json.loads(self.state_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning(f"Ignoring unreadable state file {self.state_path}: {e}")
                return
            if not isinstance(data, dict):
                logger.warning(f"Ignoring malformed state file {self.state_path}")
                return
            self._from_dict(data)

    def save(self) -> None:
        with self._lock:
            self._save_locked()

    def _save_locked(self) -> None:
        try:
            self.state_path.parent.mkdir(parents=True, exist_ok=True)
            self.state_path.write_text(json.dumps(self._to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise ConfigFileError(f"Failed to write state to {self.state_path}: {e}") from e

    def _to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"last_check": self.last_check}
        for scope, mtime in self.mtimes.items():
            data[f"{scope.value}_mtime"] = mtime
        for scope, path in self.paths.items():
            data[f"{scope.value}_path"] = path
        if self.cached_envs is not None:
            data["cached_envs"] = _envs_to_dict(self.cached_envs)
        return data

    def _from_dict(self, data: dict[str, Any]) -> None:
        self.last_check = int(data.get("last_check") or 0)
        self.mtimes = {}
        self.paths = {}
        for scope in Scope:
            mtime = data.get(f"{scope.value}_mtime")
            if isinstance(mtime, int):
                self.mtimes[scope] = mtime
            path = data.get(f"{scope.value}_path")
            if isinstance(path, str):
                self.paths[scope] = path
        cached = data.get("cached_envs")
        self.cached_envs = _envs_from_dict(cached) if isinstance(cached, dict) else None

    # ===== Staleness =====

    def has_changed(self, config_paths: Mapping[Scope, Path | None]) -> bool:
        """Whether a recompute is required.

        A scope counts as changed when its config file is not the one that
        was recorded, when its mtime is newer than the recorded one, or when
        a previously recorded file is gone. A file that never existed is not
        a change.
        """
        with self._lock:
            for scope, path in config_paths.items():
                if path is None:
                    continue
                stored_path = self.paths.get(scope)
                if stored_path is not None and stored_path != str(path):
                    logger.debug(f"{scope} config moved from {stored_path} to {path}")
                    return True

                stored = self.mtimes.get(scope, 0)
                mtime = _mtime(Path(path))
                if mtime is None:
                    if stored > 0:
                        logger.debug(f"{scope} config {path} was removed")
                        return True
                    continue
                if mtime > stored:
                    logger.debug(f"{scope} config {path} was modified")
                    return True
            return False

    def update(self, config_paths: Mapping[Scope, Path | None], envs: Envs) -> None:
        """Record the current mtimes together with a freshly computed environment and save."""
        with self._lock:
            self.last_check = unix_now()
            for scope, path in config_paths.items():
                if path is None:
                    continue
                self.paths[scope] = str(path)
                mtime = _mtime(Path(path))
                if mtime is None:
                    self.mtimes.pop(scope, None)
                else:
                    self.mtimes[scope] = mtime
            self.cached_envs = envs
            self._save_locked()

    def get_cached_envs(self) -> Envs | None:
        """A copy of the cached environment, or None before the first update."""
        with self._lock:
            if self.cached_envs is None:
                return None
            return Envs(variables=Vars(self.cached_envs.variables), paths=Paths(self.cached_envs.paths))


def _envs_to_dict(envs: Envs) -> dict[str, Any]:
    variables = {key: (None if value is UNSET else value) for key, value in envs.variables.items()}
    return {"variables": variables, "paths": envs.paths.to_list()}


def _envs_from_dict(data: dict[str, Any]) -> Envs:
    variables = Vars()
    raw = data.get("variables")
    if isinstance(raw, dict):
        for key, value in raw.items():
            variables[key] = UNSET if value is None else str(value)
    paths = Paths()
    raw = data.get("paths")
    if isinstance(raw, list):
        paths.merge(str(entry) for entry in raw)
    return Envs(variables=variables, paths=paths)
