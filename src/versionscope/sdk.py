"""Installed versions of one tool and their activation.

Install layout::

    {installs}/{tool}/v-{version}/{tool}-{version}/    main runtime
    {installs}/{tool}/v-{version}/{name}-{version}/    additions

Activation writes the chosen version into the scope config and points the
scope's shim directory (one link per runtime name) at the install.
"""

import json
import logging
import shutil
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path

from .archive import decompress
from .archive import is_archive
from .checksum import Checksum
from .context import RuntimeContext
from .download import Downloader
from .download import filename_from_url
from .download import is_remote
from .envs import Envs
from .exceptions import InstallError
from .exceptions import VersionAlreadyInstalledError
from .exceptions import VersionNotInstalledError
from .exceptions import VersionScopeError
from .models import LOOKUP_ORDER
from .models import Runtime
from .models import RuntimePackage
from .models import Scope
from .paths import DIR_NAME
from .plugin import AvailableHookResultItem
from .plugin import PluginWrapper
from .plugin import PreInstallPackageItem
from .symlinks import create_links
from .symlinks import links_point_to
from .symlinks import remove_links
from .utils import move_files
from .utils import unix_now
from .utils import version_sort_key

logger = logging.getLogger(__name__)

VERSION_DIR_PREFIX = "v-"
UNLINK_ATTR = "unlink"
GITIGNORE_FILENAME = ".gitignore"


def ensure_in_gitignore(project_dir: Path) -> bool:
    """Add the project shim directory to an existing ``.gitignore``.

    A missing ``.gitignore`` is left missing.

    Returns:
        True if the entry was appended
    """
    path = project_dir / GITIGNORE_FILENAME
    if not path.is_file():
        return False

    content = path.read_text(encoding="utf-8")
    for line in content.splitlines():
        if line.strip() in (DIR_NAME, f"{DIR_NAME}/"):
            return False

    if content and not content.endswith("\n"):
        content += "\n"
    path.write_text(f"{content}{DIR_NAME}/\n", encoding="utf-8")
    logger.debug(f"Added {DIR_NAME}/ to {path}")
    return True


class Sdk:
    """One tool: its plugin plus everything installed for it.

    Args:
        plugin: Wrapped plugin providing the hooks
        context: Layout, settings and platform operations
        downloader: Used for remote sources; created from the context's
            proxy settings on first use when omitted
    """

    def __init__(self, plugin: PluginWrapper, context: RuntimeContext, downloader: Downloader | None = None):
        self.plugin = plugin
        self.name = plugin.name
        self.context = context
        self.install_path = context.installs_dir / self.name
        self._downloader = downloader
        self._packages: dict[str, RuntimePackage] = {}

    def __repr__(self) -> str:
        return f"Sdk(name={self.name!r}, install_path={self.install_path!r})"

    @property
    def downloader(self) -> Downloader:
        if self._downloader is None:
            self._downloader = self.context.new_downloader()
        return self._downloader

    @downloader.setter
    def downloader(self, value: Downloader) -> None:
        self._downloader = value

    def label(self, version: str) -> str:
        return f"{self.name}@{version}"

    # ===== Installed Versions =====

    def version_path(self, version: str) -> Path:
        return self.install_path / f"{VERSION_DIR_PREFIX}{version}"

    def check_exists(self, version: str) -> bool:
        return self.version_path(version).is_dir()

    def list_versions(self) -> list[str]:
        """Installed versions in ascending version order."""
        if not self.install_path.is_dir():
            return []
        versions = [
            entry.name[len(VERSION_DIR_PREFIX) :]
            for entry in self.install_path.iterdir()
            if entry.is_dir() and entry.name.startswith(VERSION_DIR_PREFIX)
        ]
        return sorted(versions, key=version_sort_key)

    def get_runtime_package(self, version: str) -> RuntimePackage:
        """Describe the installed ``version`` from its directory listing.

        Raises:
            VersionNotInstalledError: If the version or its main runtime is missing
        """
        cached = self._packages.get(version)
        if cached is not None:
            return cached

        version_path = self.version_path(version)
        if not version_path.is_dir():
            raise VersionNotInstalledError(self.label(version))

        main_names = (f"{self.name}-{version}", self.name)
        main: Runtime | None = None
        additions: list[Runtime] = []
        for entry in sorted(version_path.iterdir()):
            if not entry.is_dir():
                continue
            if entry.name in main_names:
                if main is None or entry.name == main_names[0]:
                    main = Runtime(name=self.name, version=version, path=entry)
                continue
            name, sep, addition_version = entry.name.partition("-")
            if not sep:
                continue
            additions.append(Runtime(name=name, version=addition_version, path=entry))

        if main is None:
            raise VersionNotInstalledError(self.label(version))

        package = RuntimePackage(main=main, package_path=version_path, additions=tuple(additions))
        self._packages[version] = package
        return package

    def installed_packages(self) -> list[RuntimePackage]:
        packages = []
        for version in self.list_versions():
            try:
                packages.append(self.get_runtime_package(version))
            except VersionNotInstalledError:
                logger.debug(f"Skipping incomplete install {self.label(version)}")
        return packages

    # ===== Install / Uninstall =====

    def install(self, version: str) -> RuntimePackage:
        """Install ``version`` and every addition the plugin names.

        Existence is checked before asking the plugin and again with the
        version it resolved. Any failure, or SIGINT/SIGTERM, removes the
        partially built version directory.

        Raises:
            VersionAlreadyInstalledError: If the requested or resolved version exists
            PluginError: If the plugin cannot describe the version
            ChecksumMismatchError, DownloadError: If fetching a component fails
            InstallError: On any other failure
        """
        if self.check_exists(version):
            raise VersionAlreadyInstalledError(self.label(version))

        result = self.plugin.pre_install(version)
        main = result.main
        label = self.label(main.version)
        if self.check_exists(main.version):
            raise VersionAlreadyInstalledError(label)

        version_path = self.version_path(main.version)
        logger.info(f"Installing {label}")
        with self._rollback_on_signal(version_path):
            try:
                runtimes = [Runtime(name=main.name, version=main.version, path=self._install_component(main, version_path))]
                if result.additions:
                    logger.info(f"There are {len(result.additions)} additional components to install")
                for addition in result.additions:
                    path = self._install_component(addition, version_path)
                    runtimes.append(Runtime(name=addition.name, version=addition.version, path=path))
                self.plugin.post_install(version_path, runtimes)
            except VersionScopeError:
                self._rollback(version_path)
                raise
            except Exception as e:
                self._rollback(version_path)
                raise InstallError(f"failed to install {label}: {e}") from e

        self._packages.pop(main.version, None)
        logger.info(f"Installed {label}")
        return self.get_runtime_package(main.version)

    def _install_component(self, item: PreInstallPackageItem, version_path: Path) -> Path:
        dirname = f"{item.name}-{item.version}" if item.version else item.name
        target = version_path / dirname
        target.mkdir(parents=True, exist_ok=True)

        if not item.url:
            return target
        if is_remote(item.url):
            self._install_remote(item, target)
        else:
            source = Path(item.url)
            if not source.exists():
                raise InstallError(f"local source of {item.label} does not exist: {source}")
            logger.info(f"Moving {source} to {target}")
            move_files(source, target)
        return target

    def _install_remote(self, item: PreInstallPackageItem, target: Path) -> None:
        downloaded = self.downloader.download(item.url, self.install_path, item.headers)
        try:
            item.checksum.verify(downloaded)
            if is_archive(downloaded):
                logger.info(f"Unpacking {filename_from_url(item.url)}")
                decompress(downloaded, target)
            else:
                # Non-archives are kept as-is for post_install to handle
                shutil.move(str(downloaded), str(target / filename_from_url(item.url)))
        finally:
            downloaded.unlink(missing_ok=True)

    def _rollback(self, version_path: Path) -> None:
        if version_path.exists():
            logger.debug(f"Removing partial install {version_path}")
            shutil.rmtree(version_path, ignore_errors=True)

    @contextmanager
    def _rollback_on_signal(self, version_path: Path) -> Iterator[None]:
        """Remove ``version_path`` and exit when interrupted while installing."""
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        def handler(signum, frame):
            logger.warning(f"Interrupted, removing {version_path}")
            self._rollback(version_path)
            raise SystemExit(128 + signum)

        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, handler)
        try:
            yield
        finally:
            for signum, old in previous.items():
                if old is not None:
                    signal.signal(signum, old)

    def uninstall(self, version: str) -> None:
        """Remove an installed version, deactivating it first where it is in use.

        Raises:
            VersionNotInstalledError: If the version is not installed
        """
        label = self.label(version)
        if not self.check_exists(version):
            raise VersionNotInstalledError(label)

        package = self.get_runtime_package(version)
        if self.current() == version:
            self._deactivate(version, package)

        self.plugin.pre_uninstall(package)
        shutil.rmtree(self.version_path(version))
        self._packages.pop(version, None)
        logger.info(f"Uninstalled {label}")

    def _deactivate(self, version: str, package: RuntimePackage) -> None:
        chain = self.context.load_chain()
        for item in chain:
            if item.config is None or item.config.get_tool_version(self.name) != version:
                continue
            self.remove_symlinks_for_scope(package, item.scope)
            item.config.remove_tool(self.name)
        chain.save()

    # ===== Plugin Queries =====

    def available(self, args: list[str] | None = None, use_cache: bool = True) -> list[AvailableHookResultItem]:
        """Versions the plugin can install.

        Results are cached per argument list for the configured duration.
        """
        args = list(args or [])
        duration = self.context.settings.available_hook_duration
        cache_path = self.context.path_meta.user.home / "cache" / self.name / "available.json"
        key = " ".join(args)

        if use_cache and duration > 0:
            cached = self._read_available_cache(cache_path, key)
            if cached is not None:
                logger.debug(f"Using cached available versions of {self.name}")
                return cached

        items = self.plugin.available(args)
        if duration > 0:
            self._write_available_cache(cache_path, key, items, unix_now() + duration)
        return items

    def _read_available_cache(self, path: Path, key: str) -> list[AvailableHookResultItem] | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            entry = data[key]
            if int(entry["expires"]) <= unix_now():
                return None
            return [_available_item_from_dict(item) for item in entry["items"]]
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.debug(f"Ignoring unreadable cache {path}: {e}")
            return None

    def _write_available_cache(self, path: Path, key: str, items: list[AvailableHookResultItem], expires: int) -> None:
        data = {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            pass
        if not isinstance(data, dict):
            data = {}
        data[key] = {"expires": expires, "items": [asdict(item) for item in items]}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to write cache {path}: {e}")

    def env_keys(self, version: str) -> Envs:
        """Variables and PATH entries of ``version`` at its install location.

        Raises:
            VersionNotInstalledError: If the version is not installed
        """
        if not self.check_exists(version):
            raise VersionNotInstalledError(self.label(version))
        return self.plugin.env_keys(self.get_runtime_package(version))

    def env_keys_for_scope(self, version: str, scope: Scope) -> Envs:
        """Variables and PATH entries of ``version`` as seen through a scope's shims.

        Nothing on disk is changed; the links need not exist yet.
        """
        if not self.check_exists(version):
            raise VersionNotInstalledError(self.label(version))
        package = self.get_runtime_package(version)
        link_dir = self.context.link_dir(scope)
        linked = RuntimePackage(
            main=Runtime(name=package.main.name, version=package.main.version, path=link_dir / package.main.name),
            package_path=package.package_path,
            additions=tuple(
                Runtime(name=runtime.name, version=runtime.version, path=link_dir / runtime.name)
                for runtime in package.additions
            ),
        )
        return self.plugin.env_keys(linked)

    def is_linked(self, version: str, scope: Scope) -> bool:
        """Whether the shims of ``scope`` currently point at ``version``."""
        if not self.check_exists(version):
            return False
        return links_point_to(self.context.ops, self.get_runtime_package(version), self.context.link_dir(scope))

    def parse_legacy_file(self, path: Path) -> str | None:
        return self.plugin.parse_legacy_file(path, self.list_versions, self.context.settings.legacy_strategy)

    # ===== Activation =====

    def current(self) -> str | None:
        """Active version: the first installed one by Project > Session > Global."""
        chain = self.context.load_chain(*LOOKUP_ORDER)
        for item in chain:
            if item.config is None:
                continue
            version = item.config.get_tool_version(self.name)
            if version and self.check_exists(version):
                return version
        return None

    def resolve_version(self, version: str, scope: Scope) -> str | None:
        """Pick the installed version a request means.

        The plugin's ``pre_use`` answer wins when given. Otherwise an exact
        match is used, then the lowest installed version equal to the request
        or starting with ``{request}.``.
        """
        hooked = self.plugin.pre_use(
            version,
            self.current(),
            scope,
            self.context.path_meta.working.directory,
            self.installed_packages(),
        )
        if hooked:
            logger.debug(f"pre_use of {self.name} resolved {version} to {hooked}")
            return hooked

        installed = self.list_versions()
        if version in installed:
            return version
        prefix = f"{version}."
        for candidate in sorted(installed, key=version_sort_key):
            if candidate == version or candidate.startswith(prefix):
                logger.debug(f"Fuzzy matched {self.label(version)} to {candidate}")
                return candidate
        return None

    def use(self, version: str, scope: Scope, unlink: bool = False) -> str:
        """Activate ``version`` in ``scope``.

        The session scope is always updated as well since a live shell's
        PATH points at the session shims. With ``unlink`` on the project
        scope, the entry is tagged and no project shims are made.

        Returns:
            The resolved version

        Raises:
            VersionNotInstalledError: If nothing installed matches ``version``
        """
        resolved = self.resolve_version(version, scope)
        if not resolved or not self.check_exists(resolved):
            raise VersionNotInstalledError(self.label(resolved or version))
        package = self.get_runtime_package(resolved)
        skip_scope_links = unlink and scope is Scope.PROJECT

        scopes = [scope] if scope is Scope.SESSION else [scope, Scope.SESSION]
        chain = self.context.load_chain(*scopes)
        for item in chain:
            config = item.config
            previous = config.get_tool(self.name)
            if previous is not None and previous.version != resolved and self.check_exists(previous.version):
                self.remove_symlinks_for_scope(self.get_runtime_package(previous.version), item.scope)

            attr = dict(previous.attr) if previous is not None else {}
            if item.scope is scope and scope is Scope.PROJECT:
                if unlink:
                    attr[UNLINK_ATTR] = "true"
                else:
                    attr.pop(UNLINK_ATTR, None)
            config.set_tool(self.name, resolved, attr)

        self.create_symlinks_for_scope(package, Scope.SESSION)
        if scope is not Scope.SESSION and not skip_scope_links:
            self.create_symlinks_for_scope(package, scope)

        chain.save()
        logger.info(f"Now using {self.label(resolved)} ({scope})")
        return resolved

    def unuse(self, scope: Scope) -> bool:
        """Deactivate the tool in ``scope`` and in the session.

        Returns:
            True if any scope had the tool recorded
        """
        scopes = [scope] if scope is Scope.SESSION else [scope, Scope.SESSION]
        chain = self.context.load_chain(*scopes)
        found = False
        for item in chain:
            version = item.config.get_tool_version(self.name)
            if version is None:
                continue
            found = True
            if self.check_exists(version):
                self.remove_symlinks_for_scope(self.get_runtime_package(version), item.scope)
            item.config.remove_tool(self.name)

        chain.save()
        if found:
            logger.info(f"Unused {self.name} ({scope})")
        else:
            logger.debug(f"{self.name} is not set in {scope}")
        return found

    def create_symlinks_for_scope(self, package: RuntimePackage, scope: Scope) -> int:
        link_dir = self.context.link_dir(scope)
        changed = create_links(self.context.ops, package, link_dir)
        if scope is Scope.PROJECT:
            try:
                ensure_in_gitignore(self.context.path_meta.working.directory)
            except OSError as e:
                logger.warning(f"Failed to update {GITIGNORE_FILENAME}: {e}")
        return changed

    def remove_symlinks_for_scope(self, package: RuntimePackage, scope: Scope) -> int:
        return remove_links(self.context.ops, package, self.context.link_dir(scope))

    def close(self) -> None:
        if self._downloader is not None:
            self._downloader.close()
        self.plugin.close()


def _available_item_from_dict(data: dict) -> AvailableHookResultItem:
    additions = []
    for addition in data.get("additions", []):
        checksum = addition.get("checksum") or {}
        additions.append(
            PreInstallPackageItem(
                name=addition.get("name", ""),
                version=addition.get("version", ""),
                url=addition.get("url", ""),
                headers=dict(addition.get("headers") or {}),
                note=addition.get("note", ""),
                checksum=Checksum(algorithm=checksum.get("algorithm", ""), value=checksum.get("value", "")),
            )
        )
    return AvailableHookResultItem(version=data["version"], note=data.get("note", ""), additions=additions)
