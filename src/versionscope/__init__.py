"""versionscope: Scoped runtime version management.

Installs several versions of developer runtimes (node, java, ...) through
plugins and activates them per scope:
- Global (machine-wide, ~/.versionscope/.versionscope.toml)
- Session (the current shell lineage, a per-pid temp directory)
- Project (the working directory's .versionscope.toml)

Activation points a per-scope directory of links ("shims") at the chosen
install; the shell hook puts those directories on PATH.

Public API:
    Manager: Entry point (plugin lookup, batch install, shell environment)
    Sdk: Install/uninstall/use/unuse of one tool
    Plugin: Base class of the hook contract implemented by plugins
    Scope: Enum for GLOBAL/PROJECT/SESSION scopes
    ConfigFile, ConfigChain: Per-scope tool configs and their merge
    Envs, Vars, Paths, UNSET: Environment composition
    VersionScopeError and subclasses: Exception types

Example:
    ```python
    from versionscope import Manager, Scope

    with Manager(plugin_loader=load_plugin) as manager:
        sdk = manager.lookup_sdk("nodejs")
        sdk.install("20.5.0")
        sdk.use("20", Scope.PROJECT)  # resolves to 20.5.0
        print(manager.export_env("bash"))
    ```
"""

from .chain import ConfigChain
from .config_file import ConfigFile
from .context import RuntimeContext
from .envs import UNSET
from .envs import Envs
from .envs import Paths
from .envs import Vars
from .envs import merge_by_scope_priority
from .exceptions import BatchError
from .exceptions import ChecksumMismatchError
from .exceptions import ConfigError
from .exceptions import ConfigFileError
from .exceptions import ConfigValidationError
from .exceptions import DownloadError
from .exceptions import InstallError
from .exceptions import ManifestNotFoundError
from .exceptions import NoResultProvidedError
from .exceptions import NotFoundError
from .exceptions import PluginError
from .exceptions import PluginNotFoundError
from .exceptions import VersionAlreadyInstalledError
from .exceptions import VersionNotInstalledError
from .exceptions import VersionScopeError
from .manager import Manager
from .models import PathMeta
from .models import Runtime
from .models import RuntimePackage
from .models import Scope
from .models import ToolConfig
from .paths import new_path_meta
from .plugin import Plugin
from .plugin import PluginMetadata
from .sdk import Sdk
from .settings import Settings
from .settings import SettingsManager

__version__ = "0.1.0"

__all__ = [
    "Manager",
    "Sdk",
    "Plugin",
    "PluginMetadata",
    "RuntimeContext",
    "Scope",
    "ToolConfig",
    "Runtime",
    "RuntimePackage",
    "PathMeta",
    "new_path_meta",
    "ConfigFile",
    "ConfigChain",
    "Envs",
    "Vars",
    "Paths",
    "UNSET",
    "merge_by_scope_priority",
    "Settings",
    "SettingsManager",
    "VersionScopeError",
    "ConfigError",
    "ConfigFileError",
    "ConfigValidationError",
    "NotFoundError",
    "PluginNotFoundError",
    "VersionNotInstalledError",
    "VersionAlreadyInstalledError",
    "ChecksumMismatchError",
    "NoResultProvidedError",
    "PluginError",
    "DownloadError",
    "ManifestNotFoundError",
    "InstallError",
    "BatchError",
]
