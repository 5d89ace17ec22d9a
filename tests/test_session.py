"""Tests for session directories and the daily sweep."""

import pytest
from versionscope.paths import CUR_TMP_PATH_FLAG
from versionscope.paths import PID_FLAG
from versionscope.paths import TMUX_ENV
from versionscope.paths import get_pid
from versionscope.paths import is_managed_path
from versionscope.paths import new_path_meta
from versionscope.paths import resolve_session_dir
from versionscope.paths import session_dir_name
from versionscope.platform_ops import PosixOps
from versionscope.session import CLEANUP_FLAG_FILENAME
from versionscope.session import clean_tmp
from versionscope.session import parse_session_dir_name
from versionscope.utils import begin_of_today

DAY = 24 * 60 * 60


class FakeOps(PosixOps):
    def __init__(self, alive=()):
        self.alive = set(alive)

    def is_process_alive(self, pid):
        return pid in self.alive


class TestSessionDirectory:
    """Test session directory naming and reuse."""

    def test_name(self):
        """Test session directory names."""
        assert session_dir_name(123) == f"{begin_of_today()}-123"
        assert parse_session_dir_name(session_dir_name(123)) == (begin_of_today(), 123)

    def test_parse_rejects_other_names(self):
        """Test other directory names are not sessions."""
        assert parse_session_dir_name("cache") is None
        assert parse_session_dir_name("abc-12") is None

    def test_pid_from_hook(self, monkeypatch):
        """Test the pid comes from the hook."""
        monkeypatch.setenv(PID_FLAG, "777")
        assert get_pid() == 777

    def test_malformed_pid_falls_back(self, monkeypatch):
        """Test a malformed pid falls back to the parent process."""
        monkeypatch.setenv(PID_FLAG, "abc")
        assert get_pid() > 0

    def test_inherited_session_dir(self, tmp_path, monkeypatch):
        """Test an inherited session directory is reused."""
        inherited = tmp_path / "parent-session"
        monkeypatch.setenv(CUR_TMP_PATH_FLAG, str(inherited))
        assert resolve_session_dir(tmp_path, 1) == inherited

    def test_tmux_gets_own_session(self, tmp_path, monkeypatch):
        """Test tmux panes get their own session."""
        monkeypatch.setenv(CUR_TMP_PATH_FLAG, str(tmp_path / "parent-session"))
        monkeypatch.setenv(TMUX_ENV, "/tmp/tmux-1000/default,1,0")
        assert resolve_session_dir(tmp_path, 1) == tmp_path / session_dir_name(1)

    def test_new_path_meta_layout(self, tmp_path):
        """Test the directory layout built by new_path_meta."""
        meta = new_path_meta(user_home=tmp_path / "home", current_dir=tmp_path / "work", pid=9)

        assert meta.shared.root == tmp_path / "home"
        assert meta.shared.installs == tmp_path / "home" / "installs"
        assert meta.working.project_sdk_dir == tmp_path / "work" / ".versionscope" / "sdks"
        assert meta.working.session_sdk_dir == tmp_path / "home" / "tmp" / session_dir_name(9)
        assert meta.working.session_sdk_dir.is_dir()
        assert meta.working.global_sdk_dir.is_dir()
        assert not meta.working.project_sdk_dir.exists()

    def test_is_managed_path(self):
        """Test managed path detection."""
        assert is_managed_path("/home/u/.versionscope/sdks/nodejs/bin")
        assert not is_managed_path("/usr/local/bin")


class TestCleanTmp:
    """Test the once-per-day sweep."""

    @pytest.fixture
    def temp(self, tmp_path):
        temp = tmp_path / "tmp"
        temp.mkdir()
        return temp

    def test_removes_only_old_dead_sessions(self, temp):
        """Test only old sessions of dead processes are removed."""
        yesterday = begin_of_today() - DAY
        old_dead = temp / f"{yesterday}-111"
        old_alive = temp / f"{yesterday}-222"
        today_dead = temp / f"{begin_of_today()}-333"
        unrelated = temp / "downloads"
        for directory in (old_dead, old_alive, today_dead, unrelated):
            directory.mkdir()

        removed = clean_tmp(temp, FakeOps(alive={222}))

        assert removed == [old_dead]
        assert not old_dead.exists()
        assert old_alive.exists()
        assert today_dead.exists()
        assert unrelated.exists()

    def test_runs_once_per_day(self, temp):
        """Test the sweep runs once per day unless forced."""
        clean_tmp(temp, FakeOps())
        assert (temp / CLEANUP_FLAG_FILENAME).read_text() == str(begin_of_today())

        stale = temp / f"{begin_of_today() - DAY}-111"
        stale.mkdir()
        assert clean_tmp(temp, FakeOps()) == []
        assert stale.exists()

        assert clean_tmp(temp, FakeOps(), force=True) == [stale]

    def test_outdated_flag_triggers_sweep(self, temp):
        """Test an outdated flag file triggers a sweep."""
        (temp / CLEANUP_FLAG_FILENAME).write_text(str(begin_of_today() - DAY))
        stale = temp / f"{begin_of_today() - 2 * DAY}-111"
        stale.mkdir()
        assert clean_tmp(temp, FakeOps()) == [stale]
