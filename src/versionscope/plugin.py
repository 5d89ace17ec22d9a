"""Plugin hook contract.

A plugin is a runtime "source" that knows how to discover, fetch and
describe versions of one tool. The hook runtime itself (embedded
interpreter, subprocess, FFI) lives outside this package: anything
subclassing ``Plugin`` satisfies the contract.

Hooks:

=================  =========  ==============================================
Hook               Required   Fallback when absent or declined
=================  =========  ==============================================
available          yes        -
pre_install        yes        -
env_keys           yes        -
post_install       no         skipped
pre_use            no         exact, then fuzzy match on installed versions
parse_legacy_file  no         legacy files of the plugin are ignored
pre_uninstall      no         skipped
=================  =========  ==============================================

An optional hook declines by raising ``NoResultProvidedError``.
"""

import logging
import re
from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from .checksum import NONE_CHECKSUM
from .checksum import Checksum
from .envs import Envs
from .envs import Paths
from .envs import Vars
from .exceptions import NoResultProvidedError
from .exceptions import PluginError
from .models import Runtime
from .models import RuntimePackage
from .models import Scope

logger = logging.getLogger(__name__)

REQUIRED_HOOKS: tuple[str, ...] = ("available", "pre_install", "env_keys")
OPTIONAL_HOOKS: tuple[str, ...] = ("post_install", "pre_use", "parse_legacy_file", "pre_uninstall")

_VALID_NAME = re.compile(r"^[a-zA-Z][a-zA-Z0-9_\-]*$")


# ===== Hook Records =====


@dataclass
class PreInstallPackageItem:
    """Install source of one component.

    Attributes:
        name: Component name (the main one defaults to the plugin name)
        version: Concrete version, possibly resolved from e.g. "latest"
        url: Remote URL, local path, or empty for nothing to fetch
        headers: Extra request headers for remote downloads
        checksum: Digest of the remote file
    """

    name: str = ""
    version: str = ""
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    note: str = ""
    checksum: Checksum = NONE_CHECKSUM

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass
class PreInstallHookResult:
    main: PreInstallPackageItem
    additions: list[PreInstallPackageItem] = field(default_factory=list)


@dataclass
class AvailableHookResultItem:
    version: str
    note: str = ""
    additions: list[PreInstallPackageItem] = field(default_factory=list)


@dataclass
class InstalledPackageItem:
    name: str
    version: str
    path: str

    @classmethod
    def from_runtime(cls, runtime: Runtime) -> "InstalledPackageItem":
        return cls(name=runtime.name, version=runtime.version, path=str(runtime.path))


@dataclass
class PostInstallHookCtx:
    root_path: str
    sdk_info: dict[str, InstalledPackageItem]


@dataclass
class PreUseHookCtx:
    cwd: str
    scope: str
    version: str
    previous_version: str
    installed_sdks: dict[str, InstalledPackageItem]


@dataclass
class EnvKeysHookCtx:
    main: InstalledPackageItem
    path: str
    sdk_info: dict[str, InstalledPackageItem]


@dataclass
class EnvKeysHookResultItem:
    key: str
    value: str


@dataclass
class ParseLegacyFileHookCtx:
    filepath: str
    filename: str
    get_installed_versions: Callable[[], list[str]]
    strategy: str


@dataclass
class PreUninstallHookCtx:
    main: InstalledPackageItem
    sdk_info: dict[str, InstalledPackageItem]


@dataclass
class PluginMetadata:
    name: str
    version: str = ""
    description: str = ""
    homepage: str = ""
    legacy_filenames: list[str] = field(default_factory=list)


# ===== Capability Interface =====


class Plugin(ABC):
    """Base class of every plugin implementation.

    Subclasses implement the required hooks and override whichever optional
    hooks they support; ``has_function`` reports overridden hooks.
    """

    metadata: PluginMetadata

    @abstractmethod
    def available(self, args: list[str]) -> list[AvailableHookResultItem]:
        pass

    @abstractmethod
    def pre_install(self, version: str) -> PreInstallHookResult:
        pass

    @abstractmethod
    def env_keys(self, ctx: EnvKeysHookCtx) -> list[EnvKeysHookResultItem]:
        pass

    def post_install(self, ctx: PostInstallHookCtx) -> None:
        raise NoResultProvidedError("post_install")

    def pre_use(self, ctx: PreUseHookCtx) -> str:
        raise NoResultProvidedError("pre_use")

    def parse_legacy_file(self, ctx: ParseLegacyFileHookCtx) -> str:
        raise NoResultProvidedError("parse_legacy_file")

    def pre_uninstall(self, ctx: PreUninstallHookCtx) -> None:
        raise NoResultProvidedError("pre_uninstall")

    def has_function(self, name: str) -> bool:
        """Whether the hook ``name`` is implemented by this plugin."""
        if name in REQUIRED_HOOKS:
            return callable(getattr(self, name, None))
        if name not in OPTIONAL_HOOKS:
            return False
        return getattr(type(self), name, None) is not getattr(Plugin, name)

    def close(self) -> None:
        pass


def _installed_items(package: RuntimePackage) -> dict[str, InstalledPackageItem]:
    return {runtime.name: InstalledPackageItem.from_runtime(runtime) for runtime in package.additions}


class PluginWrapper:
    """Calls plugin hooks and applies the engine's fallbacks.

    Args:
        plugin: The hook implementation
        installed_path: Directory the plugin was loaded from, if any
    """

    def __init__(self, plugin: Plugin, installed_path: Path | None = None):
        self.plugin = plugin
        self.metadata = plugin.metadata
        self.installed_path = installed_path

    @property
    def name(self) -> str:
        return self.metadata.name

    def validate(self) -> None:
        """Check the plugin name and the presence of every required hook.

        Raises:
            PluginError: If the plugin is unusable
        """
        if not self.name:
            raise PluginError("no plugin name provided")
        if not _VALID_NAME.match(self.name):
            raise PluginError(f"invalid plugin name [{self.name}]")
        for hook in REQUIRED_HOOKS:
            if not self.plugin.has_function(hook):
                raise PluginError(f"[{self.name}] required hook '{hook}' not found")

    def has_function(self, name: str) -> bool:
        return self.plugin.has_function(name)

    def available(self, args: list[str] | None = None) -> list[AvailableHookResultItem]:
        try:
            return self.plugin.available(list(args or []))
        except NoResultProvidedError:
            return []

    def pre_install(self, version: str) -> PreInstallHookResult:
        """Ask the plugin where to get ``version`` from.

        Raises:
            PluginError: If the plugin gives no usable answer
        """
        try:
            result = self.plugin.pre_install(version)
        except NoResultProvidedError as e:
            raise PluginError(f"[{self.name}] no information about version {version}") from e

        if result is None or result.main is None or not result.main.version:
            raise PluginError(f"[{self.name}] no information about version {version}")

        result.main.name = result.main.name or self.name
        for index, addition in enumerate(result.additions, start=1):
            if not addition.name:
                raise PluginError(f"[{self.name}] pre_install addition {index}: no name provided")
            addition.version = addition.version or result.main.version
        return result

    def post_install(self, root_path: Path, runtimes: list[Runtime]) -> None:
        if not self.has_function("post_install"):
            return
        ctx = PostInstallHookCtx(
            root_path=str(root_path),
            sdk_info={runtime.name: InstalledPackageItem.from_runtime(runtime) for runtime in runtimes},
        )
        logger.debug(f"Calling post_install of {self.name}: {ctx}")
        try:
            self.plugin.post_install(ctx)
        except NoResultProvidedError:
            pass

    def env_keys(self, package: RuntimePackage) -> Envs:
        """Ask the plugin which variables and PATH entries a package needs.

        Entries with key ``PATH`` become PATH entries, everything else a
        variable.
        """
        ctx = EnvKeysHookCtx(
            main=InstalledPackageItem.from_runtime(package.main),
            path=str(package.main.path),
            sdk_info=_installed_items(package),
        )
        try:
            items = self.plugin.env_keys(ctx)
        except NoResultProvidedError as e:
            raise PluginError(f"[{self.name}] no environment variables provided") from e

        variables = Vars()
        paths = Paths()
        for item in items or []:
            if item.key == "PATH":
                paths.add(item.value)
            else:
                variables[item.key] = item.value
        return Envs(variables=variables, paths=paths)

    def pre_use(
        self,
        version: str,
        previous_version: str | None,
        scope: Scope,
        cwd: Path,
        installed: list[RuntimePackage],
    ) -> str | None:
        """Let the plugin pick the version to use.

        Returns:
            The plugin's version, or None to fall back to local matching
        """
        if not self.has_function("pre_use"):
            return None
        ctx = PreUseHookCtx(
            cwd=str(cwd),
            scope=scope.value,
            version=version,
            previous_version=previous_version or "",
            installed_sdks={package.main.version: InstalledPackageItem.from_runtime(package.main) for package in installed},
        )
        try:
            result = self.plugin.pre_use(ctx)
        except NoResultProvidedError:
            return None
        return result or None

    def parse_legacy_file(self, path: Path, installed_versions: Callable[[], list[str]], strategy: str) -> str | None:
        if not self.metadata.legacy_filenames or not self.has_function("parse_legacy_file"):
            return None
        ctx = ParseLegacyFileHookCtx(
            filepath=str(path),
            filename=path.name,
            get_installed_versions=installed_versions,
            strategy=strategy,
        )
        try:
            result = self.plugin.parse_legacy_file(ctx)
        except NoResultProvidedError:
            return None
        return result or None

    def pre_uninstall(self, package: RuntimePackage) -> None:
        if not self.has_function("pre_uninstall"):
            return
        ctx = PreUninstallHookCtx(
            main=InstalledPackageItem.from_runtime(package.main),
            sdk_info=_installed_items(package),
        )
        try:
            self.plugin.pre_uninstall(ctx)
        except NoResultProvidedError:
            pass

    def close(self) -> None:
        self.plugin.close()
