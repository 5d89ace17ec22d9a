"""Tests for the staleness cache."""

import json
import os

import pytest
from versionscope.envs import UNSET
from versionscope.envs import Envs
from versionscope.envs import Paths
from versionscope.envs import Vars
from versionscope.models import Scope
from versionscope.state import ConfigState


def bump_mtime(path, seconds=2):
    stat = path.stat()
    os.utime(path, (stat.st_atime + seconds, stat.st_mtime + seconds))


def make_envs(**variables):
    return Envs(variables=Vars(variables), paths=Paths(["/links/nodejs/bin"]))


class TestConfigState:
    """Test ConfigState staleness detection."""

    @pytest.fixture
    def configs(self, tmp_path):
        paths = {}
        for scope in Scope:
            path = tmp_path / scope.value / ".versionscope.toml"
            path.parent.mkdir()
            path.write_text('[tools]\nnodejs = "20"\n')
            paths[scope] = path
        return paths

    @pytest.fixture
    def state(self, tmp_path):
        return ConfigState(tmp_path / "session" / ".env-state.json")

    # ===== Staleness Tests =====

    def test_unchanged_after_update(self, state, configs):
        """Recording the configs makes them fresh."""
        assert state.has_changed(configs)
        state.update(configs, make_envs(A="1"))
        assert not state.has_changed(configs)
        assert state.get_cached_envs() == make_envs(A="1")

    def test_changed_after_mtime_advances(self, state, configs):
        """Test a newer mtime is a change."""
        state.update(configs, make_envs())
        bump_mtime(configs[Scope.PROJECT])
        assert state.has_changed(configs)

    def test_changed_after_deletion(self, state, configs):
        """A recorded config that disappears is a change."""
        state.update(configs, make_envs())
        configs[Scope.GLOBAL].unlink()
        assert state.has_changed(configs)

    def test_never_existing_file_is_not_a_change(self, state, configs, tmp_path):
        """Test a file that never existed is not a change."""
        configs[Scope.PROJECT] = tmp_path / "elsewhere" / ".versionscope.toml"
        state.update(configs, make_envs())
        assert not state.has_changed(configs)

    def test_created_file_is_a_change(self, state, configs, tmp_path):
        """A config appearing where none existed is a change."""
        missing = tmp_path / "later" / ".versionscope.toml"
        configs[Scope.PROJECT] = missing
        state.update(configs, make_envs())

        missing.parent.mkdir()
        missing.write_text("[tools]\n")
        assert state.has_changed(configs)

    def test_different_file_is_a_change(self, state, configs, tmp_path):
        """Moving to another project is a change even with an older mtime."""
        state.update(configs, make_envs())

        other = tmp_path / "other-project" / ".versionscope.toml"
        other.parent.mkdir()
        other.write_text("[tools]\n")
        os.utime(other, (0, 0))
        assert state.has_changed({**configs, Scope.PROJECT: other})

    def test_none_paths_are_ignored(self, state, configs):
        """Test scopes without a path are ignored."""
        state.update(configs, make_envs())
        assert not state.has_changed({**configs, Scope.SESSION: None})

    # ===== Cached Environment Tests =====

    def test_cached_envs_is_a_copy(self, state, configs):
        """Changing the returned environment leaves the cache intact."""
        state.update(configs, make_envs(A="1"))

        envs = state.get_cached_envs()
        envs.variables["A"] = "2"
        envs.paths.add("/usr/bin")

        assert state.get_cached_envs() == make_envs(A="1")

    def test_persisted_across_instances(self, state, configs):
        """Variables, unset markers and PATH entries survive a reload."""
        envs = make_envs(NODEJS_HOME="/links/nodejs", OLD_HOME=UNSET)
        state.update(configs, envs)

        reloaded = ConfigState(state.state_path)
        reloaded.load()
        cached = reloaded.get_cached_envs()
        assert cached.variables["NODEJS_HOME"] == "/links/nodejs"
        assert cached.variables["OLD_HOME"] is UNSET
        assert cached.paths.to_list() == ["/links/nodejs/bin"]
        assert not reloaded.has_changed(configs)

        data = json.loads(state.state_path.read_text())
        assert data["project_mtime"] == int(configs[Scope.PROJECT].stat().st_mtime)
        assert data["last_check"] > 0
        assert data["cached_envs"]["variables"]["OLD_HOME"] is None

    def test_state_does_not_store_system_path(self, state, configs, monkeypatch):
        """Only the managed entries are recorded, never the shell's PATH."""
        monkeypatch.setenv("PATH", "/venv/bin:/usr/bin")
        state.update(configs, make_envs())

        data = json.loads(state.state_path.read_text())
        assert data["cached_envs"]["paths"] == ["/links/nodejs/bin"]
        assert "/venv/bin" not in state.state_path.read_text()

    def test_load_missing_file(self, state):
        """Test loading without a state file."""
        state.load()
        assert state.get_cached_envs() is None

    def test_load_corrupt_file(self, state):
        """An unreadable state file behaves like a missing one."""
        state.state_path.parent.mkdir(parents=True, exist_ok=True)
        state.state_path.write_text("{not json")
        state.load()
        assert state.get_cached_envs() is None
