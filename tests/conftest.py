"""Shared fixtures: an isolated directory layout and an in-memory plugin."""

import pytest
from versionscope.checksum import NONE_CHECKSUM
from versionscope.context import RuntimeContext
from versionscope.exceptions import NoResultProvidedError
from versionscope.paths import CACHE_DIR_ENV
from versionscope.paths import CUR_TMP_PATH_FLAG
from versionscope.paths import HOME_ENV
from versionscope.paths import HOOK_FLAG
from versionscope.paths import PID_FLAG
from versionscope.paths import PLUGIN_DIR_ENV
from versionscope.paths import ROOT_ENV
from versionscope.paths import TEMP_DIR_ENV
from versionscope.paths import TMUX_ENV
from versionscope.paths import new_path_meta
from versionscope.platform_ops import PosixOps
from versionscope.plugin import AvailableHookResultItem
from versionscope.plugin import EnvKeysHookResultItem
from versionscope.plugin import Plugin
from versionscope.plugin import PluginMetadata
from versionscope.plugin import PreInstallHookResult
from versionscope.plugin import PluginWrapper
from versionscope.plugin import PreInstallPackageItem
from versionscope.sdk import Sdk
from versionscope.settings import Settings
from versionscope.utils import version_sort_key

SESSION_PID = 4242


class FakePlugin(Plugin):
    """Plugin serving versions from a dict of ``version -> source url``."""

    def __init__(self, name="nodejs", sources=None, additions=None, checksums=None, legacy_filenames=None):
        self.metadata = PluginMetadata(name=name, version="0.1.0", legacy_filenames=list(legacy_filenames or []))
        self.sources = dict(sources or {})
        self.additions = dict(additions or {})
        self.checksums = dict(checksums or {})
        self.available_calls = 0
        self.pre_install_calls = []
        self.env_keys_calls = 0

    def available(self, args):
        self.available_calls += 1
        return [AvailableHookResultItem(version=version, note="lts") for version in sorted(self.sources)]

    def pre_install(self, version):
        self.pre_install_calls.append(version)
        if version == "latest" and self.sources:
            version = max(self.sources, key=version_sort_key)
        if version not in self.sources:
            raise NoResultProvidedError(version)
        main = PreInstallPackageItem(
            version=version,
            url=self.sources[version],
            checksum=self.checksums.get(version, NONE_CHECKSUM),
        )
        additions = [PreInstallPackageItem(name=name, version=v) for name, v in self.additions.get(version, [])]
        return PreInstallHookResult(main=main, additions=additions)

    def env_keys(self, ctx):
        self.env_keys_calls += 1
        return [
            EnvKeysHookResultItem(key="PATH", value=f"{ctx.path}/bin"),
            EnvKeysHookResultItem(key=f"{self.metadata.name.upper()}_HOME", value=ctx.path),
        ]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's own environment out of the tests."""
    for name in (
        HOME_ENV,
        ROOT_ENV,
        PLUGIN_DIR_ENV,
        CACHE_DIR_ENV,
        TEMP_DIR_ENV,
        HOOK_FLAG,
        PID_FLAG,
        CUR_TMP_PATH_FLAG,
        TMUX_ENV,
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def path_meta(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    return new_path_meta(
        user_home=tmp_path / "home",
        shared_root=tmp_path / "root",
        current_dir=project,
        pid=SESSION_PID,
    )


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def context(path_meta, settings):
    return RuntimeContext(path_meta, settings, PosixOps())


@pytest.fixture
def plugin():
    return FakePlugin(sources={"18.0.0": "", "20.5.0": ""})


@pytest.fixture
def sdk(plugin, context):
    return Sdk(PluginWrapper(plugin), context)
