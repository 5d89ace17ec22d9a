"""Tests for shim link maintenance."""

import os

import pytest
from versionscope.models import Runtime
from versionscope.models import RuntimePackage
from versionscope.platform_ops import PosixOps
from versionscope.symlinks import create_links
from versionscope.symlinks import ensure_dir_link
from versionscope.symlinks import links_point_to
from versionscope.symlinks import remove_dir_link
from versionscope.symlinks import remove_links


class CountingOps(PosixOps):
    """Records every filesystem mutation."""

    def __init__(self):
        self.mutations = []

    def create_dir_link(self, target, link):
        self.mutations.append(("create", link))
        super().create_dir_link(target, link)

    def remove_dir_link(self, link):
        self.mutations.append(("remove", link))
        super().remove_dir_link(link)


@pytest.fixture
def ops():
    return CountingOps()


def make_package(root, version, additions=()):
    version_path = root / f"v-{version}"
    main = Runtime("nodejs", version, version_path / f"nodejs-{version}")
    extra = tuple(Runtime(name, version, version_path / f"{name}-{version}") for name in additions)
    for runtime in (main, *extra):
        runtime.path.mkdir(parents=True)
    return RuntimePackage(main=main, package_path=version_path, additions=extra)


class TestEnsureDirLink:
    """Test idempotent link creation."""

    def test_second_call_is_noop(self, tmp_path, ops):
        """Test linking twice leaves the link alone."""
        target = tmp_path / "install"
        target.mkdir()
        link = tmp_path / "shims" / "nodejs"

        assert ensure_dir_link(ops, target, link)
        assert not ensure_dir_link(ops, target, link)

        assert ops.mutations == [("create", link)]
        assert os.readlink(link) == str(target)

    def test_relative_target_is_normalized(self, tmp_path, ops):
        """Test relative link targets are compared normalized."""
        target = tmp_path / "install"
        target.mkdir()
        link = tmp_path / "nodejs"
        os.symlink("install", link)

        assert not ensure_dir_link(ops, target, link)
        assert ops.mutations == []

    def test_retarget(self, tmp_path, ops):
        """Test a link is retargeted to a new version."""
        old, new = tmp_path / "old", tmp_path / "new"
        old.mkdir()
        new.mkdir()
        link = tmp_path / "nodejs"

        ensure_dir_link(ops, old, link)
        assert ensure_dir_link(ops, new, link)
        assert os.readlink(link) == str(new)
        assert [kind for kind, _ in ops.mutations] == ["create", "remove", "create"]
        assert old.exists()

    def test_refuses_to_replace_directory(self, tmp_path, ops):
        """Test a real directory is never replaced."""
        link = tmp_path / "nodejs"
        link.mkdir()
        with pytest.raises(FileExistsError):
            ensure_dir_link(ops, tmp_path, link)

    def test_remove_dir_link(self, tmp_path, ops):
        """Test removing a link."""
        target = tmp_path / "install"
        target.mkdir()
        link = tmp_path / "nodejs"
        ensure_dir_link(ops, target, link)

        assert remove_dir_link(ops, link)
        assert not remove_dir_link(ops, link)
        assert target.exists()


class TestPackageLinks:
    """Test per-package link sets."""

    def test_create_links_for_main_and_additions(self, tmp_path, ops):
        """Test links for the main runtime and additions."""
        package = make_package(tmp_path / "installs", "20.5.0", additions=("npm",))
        shims = tmp_path / "shims"

        assert create_links(ops, package, shims) == 2
        assert create_links(ops, package, shims) == 0
        assert os.readlink(shims / "nodejs") == str(package.main.path)
        assert os.readlink(shims / "npm") == str(package.additions[0].path)

    def test_remove_links(self, tmp_path, ops):
        """Test removing a package's links."""
        package = make_package(tmp_path / "installs", "20.5.0", additions=("npm",))
        shims = tmp_path / "shims"
        create_links(ops, package, shims)

        assert remove_links(ops, package, shims) == 2
        assert list(shims.iterdir()) == []

    def test_remove_links_keeps_other_versions(self, tmp_path, ops):
        """Test links to other versions are kept."""
        old = make_package(tmp_path / "installs", "18.0.0")
        new = make_package(tmp_path / "installs", "20.5.0")
        shims = tmp_path / "shims"
        create_links(ops, old, shims)
        create_links(ops, new, shims)

        assert remove_links(ops, old, shims) == 0
        assert os.readlink(shims / "nodejs") == str(new.main.path)

    def test_links_point_to(self, tmp_path, ops):
        """Test a package counts as linked only when every runtime link matches."""
        old = make_package(tmp_path / "installs", "18.0.0", additions=("npm",))
        new = make_package(tmp_path / "installs", "20.5.0", additions=("npm",))
        shims = tmp_path / "shims"
        assert not links_point_to(ops, new, shims)

        create_links(ops, new, shims)
        assert links_point_to(ops, new, shims)
        assert not links_point_to(ops, old, shims)

        remove_dir_link(ops, shims / "npm")
        assert not links_point_to(ops, new, shims)
