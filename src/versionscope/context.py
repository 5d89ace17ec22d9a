"""Per-invocation runtime context.

Bundles the path layout, the settings and the platform operations, and maps
each scope to its config directory and shim directory.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from .chain import ConfigChain
from .config_file import ConfigFile
from .config_file import determine_config_path
from .config_file import load_config
from .download import Downloader
from .envs import Paths
from .models import CONFIG_MERGE_ORDER
from .models import PathMeta
from .models import Scope
from .paths import is_managed_path
from .platform_ops import PlatformOps
from .platform_ops import get_platform_ops
from .settings import Settings

logger = logging.getLogger(__name__)


class RuntimeContext:
    """Everything an operation needs to know about where things live.

    Args:
        path_meta: Layout of this invocation
        settings: Merged settings; defaults when omitted
        ops: Platform operations; selected for the running OS when omitted
    """

    def __init__(self, path_meta: PathMeta, settings: Settings | None = None, ops: PlatformOps | None = None):
        self.path_meta = path_meta
        self.settings = settings or Settings()
        self.ops = ops or get_platform_ops()

    # ===== Scope Mapping =====

    def config_dir(self, scope: Scope) -> Path:
        """Directory holding the tool config of a scope."""
        if scope is Scope.GLOBAL:
            return self.path_meta.user.home
        if scope is Scope.PROJECT:
            return self.path_meta.working.directory
        return self.path_meta.working.session_sdk_dir

    def link_dir(self, scope: Scope) -> Path:
        """Shim directory of a scope."""
        if scope is Scope.GLOBAL:
            return self.path_meta.working.global_sdk_dir
        if scope is Scope.PROJECT:
            return self.path_meta.working.project_sdk_dir
        return self.path_meta.working.session_sdk_dir

    def config_path(self, scope: Scope) -> Path:
        return determine_config_path(self.config_dir(scope))

    def config_paths(self, scopes: Iterable[Scope] = CONFIG_MERGE_ORDER) -> dict[Scope, Path]:
        return {scope: self.config_path(scope) for scope in scopes}

    # ===== Config Loading =====

    def load_config(self, scope: Scope) -> ConfigFile:
        return load_config(self.config_dir(scope))

    def load_chain(self, *scopes: Scope) -> ConfigChain:
        """Load the configs of ``scopes`` (all, by merge priority, if none given).

        Scopes are added in the given order, so the last one has the highest
        priority.
        """
        chain = ConfigChain()
        for scope in scopes or CONFIG_MERGE_ORDER:
            chain.add(self.load_config(scope), scope)
        return chain

    # ===== Installs and Network =====

    @property
    def installs_dir(self) -> Path:
        if self.settings.sdk_path:
            return Path(self.settings.sdk_path)
        return self.path_meta.shared.installs

    def new_downloader(self, show_progress: bool = True) -> Downloader:
        proxy = self.settings.proxy
        if proxy:
            logger.debug(f"Using proxy {proxy}")
        return Downloader(proxy=proxy, show_progress=show_progress)

    # ===== System PATH =====

    def is_managed_path(self, path: str | Path) -> bool:
        """Whether a PATH entry points into a shim or install directory."""
        if is_managed_path(path):
            return True
        candidate = Path(os.path.abspath(path))
        roots = (self.path_meta.user.home, self.path_meta.user.temp, self.installs_dir)
        return any(candidate.is_relative_to(os.path.abspath(root)) for root in roots)

    def split_system_paths(self, system_paths: Paths | None = None) -> tuple[Paths, Paths]:
        """Split PATH into the entries to keep ahead of managed ones and the rest.

        Entries before the first managed entry were added after activation
        (e.g. a virtualenv) and keep their precedence. Managed entries are
        dropped; remaining entries follow the managed ones. Without any
        managed entry, everything is returned in the second part.

        Returns:
            ``(prefix_paths, clean_paths)``
        """
        entries = list(system_paths if system_paths is not None else Paths.from_os())
        prefix = Paths()
        clean = Paths()

        if not any(self.is_managed_path(entry) for entry in entries):
            clean.merge(entries)
            return prefix, clean

        found_managed = False
        for entry in entries:
            if self.is_managed_path(os.path.normpath(entry)):
                logger.debug(f"Removing managed path from system PATH: {entry}")
                found_managed = True
                continue
            if found_managed:
                clean.add(entry)
            else:
                prefix.add(entry)
        return prefix, clean
