"""Top-level manager tying plugins, installs and scopes together."""

import logging
from collections.abc import Callable
from collections.abc import Mapping
from pathlib import Path

from .context import RuntimeContext
from .envs import Envs
from .envs import Paths
from .envs import Vars
from .envs import merge_by_scope_priority
from .exceptions import BatchError
from .exceptions import PluginNotFoundError
from .exceptions import VersionAlreadyInstalledError
from .models import LOOKUP_ORDER
from .models import PathMeta
from .models import RuntimePackage
from .models import Scope
from .paths import active_shell_name
from .paths import new_path_meta
from .platform_ops import PlatformOps
from .plugin import Plugin
from .plugin import PluginWrapper
from .sdk import UNLINK_ATTR
from .sdk import Sdk
from .session import clean_tmp
from .settings import Settings
from .settings import SettingsManager
from .shell import new_shell
from .state import STATE_FILENAME
from .state import ConfigState

logger = logging.getLogger(__name__)

PluginLoader = Callable[[str, Path], Plugin]


class Manager:
    """Entry point for every operation of one invocation.

    Holds the SDK cache for the lifetime of the manager, so a plugin is
    loaded at most once per invocation.

    Args:
        path_meta: Layout; built from the environment when omitted
        settings: Settings; read from the user and shared ``config.yaml`` when omitted
        ops: Platform operations; selected for the running OS when omitted
        plugin_loader: Builds a plugin from ``(name, plugin_dir)``. Plugins
            not registered explicitly are loaded through it.

    Example:
        ```python
        manager = Manager(plugin_loader=load_lua_plugin)
        sdk = manager.lookup_sdk("nodejs")
        sdk.install("20.5.0")
        sdk.use("20", Scope.PROJECT)
        print(manager.export_env("bash"))
        ```
    """

    def __init__(
        self,
        path_meta: PathMeta | None = None,
        settings: Settings | None = None,
        ops: PlatformOps | None = None,
        plugin_loader: PluginLoader | None = None,
    ):
        self.path_meta = path_meta or new_path_meta()
        if settings is None:
            settings = SettingsManager(self.path_meta.user.config, self.path_meta.shared.config).load()
        self.context = RuntimeContext(self.path_meta, settings, ops)
        self.plugin_loader = plugin_loader
        self._sdks: dict[str, Sdk] = {}

    @property
    def settings(self) -> Settings:
        return self.context.settings

    # ===== Plugins =====

    def register_plugin(self, plugin: Plugin, installed_path: Path | None = None) -> Sdk:
        """Make a plugin available under its metadata name.

        Raises:
            PluginError: If the plugin is invalid
        """
        wrapper = PluginWrapper(plugin, installed_path)
        wrapper.validate()
        previous = self._sdks.pop(wrapper.name, None)
        if previous is not None:
            previous.close()
        sdk = Sdk(wrapper, self.context)
        self._sdks[wrapper.name] = sdk
        logger.debug(f"Registered plugin {wrapper.name}")
        return sdk

    def lookup_sdk(self, name: str) -> Sdk:
        """Return the SDK for ``name``, loading its plugin on first use.

        Raises:
            PluginNotFoundError: If no plugin provides ``name``
            PluginError: If the plugin exists but is invalid
        """
        sdk = self._sdks.get(name)
        if sdk is not None:
            return sdk

        plugin_dir = self.path_meta.shared.plugins / name
        if self.plugin_loader is None or not plugin_dir.is_dir():
            raise PluginNotFoundError(name)

        logger.debug(f"Loading plugin {name} from {plugin_dir}")
        return self.register_plugin(self.plugin_loader(name, plugin_dir), plugin_dir)

    def load_all_sdks(self) -> dict[str, Sdk]:
        """Every registered SDK plus every plugin found in the plugins directory.

        Plugins that fail to load are logged and skipped.
        """
        plugins_dir = self.path_meta.shared.plugins
        if self.plugin_loader is not None and plugins_dir.is_dir():
            for entry in sorted(plugins_dir.iterdir()):
                if not entry.is_dir() or entry.name in self._sdks:
                    continue
                try:
                    self.lookup_sdk(entry.name)
                except Exception as e:
                    logger.warning(f"Failed to load plugin {entry.name}: {e}")
        return dict(self._sdks)

    # ===== Batch Install =====

    def install_all(self, requests: Mapping[str, str] | None = None) -> list[RuntimePackage]:
        """Install several tools, continuing past individual failures.

        Args:
            requests: Tool name to version; defaults to every tool of the merged config chain

        Returns:
            Packages installed by this call (already installed ones are skipped)

        Raises:
            BatchError: After the whole batch ran, if any item failed
        """
        if requests is None:
            requests = self.context.load_chain().all_tools()

        installed: list[RuntimePackage] = []
        errors: dict[str, Exception] = {}
        for name in sorted(requests):
            version = requests[name]
            label = f"{name}@{version}"
            try:
                installed.append(self.lookup_sdk(name).install(version))
            except VersionAlreadyInstalledError:
                logger.info(f"{label} is already installed, skipping")
            except Exception as e:
                logger.warning(f"Failed to install {label}: {e}")
                errors[label] = e

        if errors:
            raise BatchError(errors)
        return installed

    # ===== Environment =====

    def legacy_versions(self) -> dict[str, str]:
        """Versions named in plugin-specific legacy files of the working directory."""
        if not self.settings.legacy_enable:
            return {}

        found: dict[str, str] = {}
        directory = self.path_meta.working.directory
        for name, sdk in self.load_all_sdks().items():
            for filename in sdk.plugin.metadata.legacy_filenames:
                path = directory / filename
                if not path.is_file():
                    continue
                version = sdk.parse_legacy_file(path)
                if version:
                    logger.debug(f"Found {name}@{version} in {path}")
                    found[name] = version
                    break
        return found

    def compute_envs(self) -> Envs:
        """Merge the environment of every configured tool across scopes.

        Each scope's tools contribute env keys as seen through that scope's
        shims. Project entries tagged ``unlink`` use the session shims. A tool
        whose shims do not point at its version (fresh checkout, or an unlink
        entry seen from another session) uses the install location instead.
        Legacy versions fill project tools that are not configured and use
        the install location directly. Uninstalled or unknown tools are
        skipped.
        """
        chain = self.context.load_chain()
        legacy = self.legacy_versions()

        envs_by_scope: dict[Scope, Envs] = {}
        for item in chain:
            envs = Envs()
            tools = item.config.tools if item.config is not None else {}
            for name in sorted(tools):
                tool = tools[name]
                sdk = self._find_sdk(name)
                if sdk is None or not sdk.check_exists(tool.version):
                    logger.debug(f"Skipping {name}@{tool.version} in {item.scope}: not available")
                    continue
                link_scope = item.scope
                if item.scope is Scope.PROJECT and tool.attr.get(UNLINK_ATTR) == "true":
                    link_scope = Scope.SESSION
                if sdk.is_linked(tool.version, link_scope):
                    envs.merge(sdk.env_keys_for_scope(tool.version, link_scope))
                else:
                    logger.debug(f"{name}@{tool.version} is not linked in {link_scope}, using install path")
                    envs.merge(sdk.env_keys(tool.version))

            if item.scope is Scope.PROJECT:
                for name in sorted(legacy):
                    if name in tools:
                        continue
                    sdk = self._find_sdk(name)
                    if sdk is not None and sdk.check_exists(legacy[name]):
                        envs.merge(sdk.env_keys(legacy[name]))

            envs_by_scope[item.scope] = envs

        return merge_by_scope_priority(envs_by_scope, LOOKUP_ORDER)

    def _find_sdk(self, name: str) -> Sdk | None:
        try:
            return self.lookup_sdk(name)
        except PluginNotFoundError:
            return None

    def export_env(self, shell_name: str | None = None, use_cache: bool = True) -> str:
        """Shell text activating the merged environment.

        PATH entries placed ahead of the managed ones (e.g. an activated
        virtualenv) stay first, managed entries follow, then the rest of the
        system PATH. While no scope config changed, the tool environment is
        taken from the session cache without calling any plugin; the system
        PATH and the shell syntax are applied on every call.
        """
        shell = new_shell(shell_name or active_shell_name() or "bash")
        state = ConfigState(self.path_meta.working.session_sdk_dir / STATE_FILENAME)
        state.load()
        config_paths = self.context.config_paths()

        envs = state.get_cached_envs() if use_cache else None
        if envs is not None and not state.has_changed(config_paths):
            logger.debug("Configs unchanged, using cached environment")
        else:
            envs = self.compute_envs()
            state.update(config_paths, envs)

        prefix, clean = self.context.split_system_paths()
        path = Paths()
        path.merge(prefix)
        path.merge(envs.paths)
        path.merge(clean)

        variables = Vars(envs.variables)
        variables["PATH"] = shell.format_paths(path)
        return shell.export(variables)

    # ===== Housekeeping =====

    def clean_tmp(self, force: bool = False) -> list[Path]:
        return clean_tmp(self.path_meta.user.temp, self.context.ops, force=force)

    def close(self) -> None:
        for sdk in self._sdks.values():
            sdk.close()
        self._sdks.clear()

    def __enter__(self) -> "Manager":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
