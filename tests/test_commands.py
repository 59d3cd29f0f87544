"""Tests for the command layer's lock/install decisions."""
import os

import pytest

import commands
import store
from backends.base import BackendDescriptor, PackageMetadata, Quirks
from config import Config
from guess.models import GuessResult


class FakeBackend:
    """Records calls; lock/install write the files a real tool would."""

    def __init__(self, root, quirks=Quirks.NONE, declared=None, guessed=None):
        self.descriptor = BackendDescriptor(
            name="fake", specfile="spec.json", lockfile="spec.lock", filename_patterns=("*.fake",), quirks=quirks
        )
        self.guess_regexps = []
        self.root = str(root)
        self.calls = []
        self.declared = dict(declared or {})
        self.guessed = dict(guessed or {})
        self.package_dir = os.path.join(self.root, "deps")

    @property
    def specfile_path(self):
        return os.path.join(self.root, self.descriptor.specfile)

    @property
    def lockfile_path(self):
        return os.path.join(self.root, self.descriptor.lockfile)

    def _write_spec(self):
        with open(self.specfile_path, "w", encoding="utf-8") as fh:
            fh.write(repr(sorted(self.declared.items())))

    def info(self, name):
        return PackageMetadata(name=name) if name == "known" else None

    def search(self, query):
        return [PackageMetadata(name=query)]

    def add(self, pkgs, project_name=""):
        self.calls.append(("add", dict(pkgs), project_name))
        self.declared.update(pkgs)
        self._write_spec()

    def remove(self, pkgs):
        self.calls.append(("remove", list(pkgs)))
        for name in pkgs:
            self.declared.pop(name, None)
        self._write_spec()

    def lock(self):
        self.calls.append(("lock",))
        with open(self.specfile_path, "r", encoding="utf-8") as src:
            content = src.read()
        with open(self.lockfile_path, "w", encoding="utf-8") as fh:
            fh.write("locked " + content)

    def install(self):
        self.calls.append(("install",))
        os.makedirs(self.package_dir, exist_ok=True)

    def list_specfile(self):
        return dict(self.declared)

    def list_lockfile(self):
        return {name: "1.0" for name in self.declared}

    def normalize_package_name(self, name):
        return name.lower().replace("_", "-")

    def get_package_dir(self):
        return self.package_dir

    def guess(self):
        return GuessResult(packages=dict(self.guessed))

    def names(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def config(tmp_path):
    return Config(store_location=str(tmp_path / ".unipm" / "store.json"))


class TestLockInstall:
    """Test lock and install with the hash store."""

    def test_first_lock_then_skip(self, tmp_path, config):
        """Test that an unchanged specfile is not relocked."""
        backend = FakeBackend(tmp_path, declared={"a": ""})
        backend._write_spec()

        commands.run_lock(backend, config)
        commands.run_lock(backend, config)
        assert backend.names() == ["lock"]

    def test_force_lock(self, tmp_path, config):
        """Test that force relocks regardless of hashes."""
        backend = FakeBackend(tmp_path, declared={"a": ""})
        backend._write_spec()
        commands.run_lock(backend, config)
        commands.run_lock(backend, config, force=True)
        assert backend.names() == ["lock", "lock"]

    def test_specfile_edit_triggers_relock(self, tmp_path, config):
        """Test that editing the specfile triggers a relock."""
        backend = FakeBackend(tmp_path, declared={"a": ""})
        backend._write_spec()
        commands.run_lock(backend, config)
        backend.declared["b"] = ""
        backend._write_spec()
        commands.run_lock(backend, config)
        assert backend.names() == ["lock", "lock"]

    def test_lock_without_specfile_does_nothing(self, tmp_path, config):
        """Test lock in a project without a specfile."""
        backend = FakeBackend(tmp_path)
        commands.run_lock(backend, config)
        assert backend.names() == []
        assert not os.path.exists(config.store_location)

    def test_install_locks_then_installs_once(self, tmp_path, config):
        """Test that install locks first and installs once."""
        backend = FakeBackend(tmp_path, declared={"a": ""})
        backend._write_spec()
        commands.run_install(backend, config)
        commands.run_install(backend, config)
        assert backend.names() == ["lock", "install"]

    def test_install_again_when_package_dir_missing(self, tmp_path, config):
        """Test reinstall when the package directory is gone."""
        backend = FakeBackend(tmp_path, declared={"a": ""})
        backend._write_spec()
        commands.run_install(backend, config)
        os.rmdir(backend.package_dir)
        commands.run_install(backend, config)
        assert backend.names() == ["lock", "install", "install"]

    def test_lock_also_installs_quirk(self, tmp_path, config):
        """Test the lock-also-installs quirk."""
        backend = FakeBackend(tmp_path, quirks=Quirks.LOCK_ALSO_INSTALLS, declared={"a": ""})
        backend._write_spec()
        commands.run_install(backend, config)
        assert backend.names() == ["lock"]

    def test_store_records_both_hashes(self, tmp_path, config):
        """Test that the store records specfile and lockfile hashes."""
        backend = FakeBackend(tmp_path, declared={"a": ""})
        backend._write_spec()
        commands.run_install(backend, config)
        assert store.does_specfile_hash_match(backend.specfile_path, config.store_location)
        assert store.does_lockfile_hash_match(backend.lockfile_path, config.store_location)


class TestAddRemove:
    """Test adding and removing packages."""

    def test_add_normalizes_and_follows_up(self, tmp_path, config):
        """Test that add normalizes names and locks and installs."""
        backend = FakeBackend(tmp_path)
        added = commands.run_add(backend, config, {"Foo_Bar": "^1"}, project_name="demo")
        assert added == {"foo-bar": "^1"}
        assert backend.calls[0] == ("add", {"foo-bar": "^1"}, "demo")
        assert backend.names() == ["add", "lock", "install"]

    def test_add_skips_declared(self, tmp_path, config):
        """Test that declared packages are not added again."""
        backend = FakeBackend(tmp_path, declared={"foo": "*"})
        backend._write_spec()
        assert commands.run_add(backend, config, {"FOO": ""}) == {}
        assert backend.names() == []

    def test_add_with_guess(self, tmp_path, config):
        """Test that add merges guessed packages."""
        backend = FakeBackend(tmp_path, declared={"a": ""}, guessed={"a": True, "b": True})
        backend._write_spec()
        added = commands.run_add(backend, config, {"c": "2"}, guess=True)
        assert added == {"c": "2", "b": ""}

    def test_quirks_suppress_follow_up(self, tmp_path, config):
        """Test that quirks suppress the follow-up lock and install."""
        quirks = Quirks.ADD_REMOVE_ALSO_LOCKS | Quirks.ADD_REMOVE_ALSO_INSTALLS
        backend = FakeBackend(tmp_path, quirks=quirks)
        commands.run_add(backend, config, {"a": ""})
        assert backend.names() == ["add"]

    def test_remove_only_declared(self, tmp_path, config):
        """Test that only declared packages are removed."""
        backend = FakeBackend(tmp_path, declared={"a": "", "b": ""})
        backend._write_spec()
        removed = commands.run_remove(backend, config, ["B", "zzz"])
        assert removed == ["b"]
        assert backend.calls[0] == ("remove", ["b"])

    def test_remove_nothing(self, tmp_path, config):
        """Test remove with nothing declared to remove."""
        backend = FakeBackend(tmp_path, declared={"a": ""})
        backend._write_spec()
        assert commands.run_remove(backend, config, ["zzz"]) == []
        assert backend.names() == []


class TestQueries:
    """Test the read-only commands."""

    def test_list(self, tmp_path):
        """Test listing declared dependencies."""
        backend = FakeBackend(tmp_path, declared={"a": "^1"})
        assert commands.run_list(backend) == {}
        backend._write_spec()
        assert commands.run_list(backend) == {"a": "^1"}
        assert commands.run_list(backend, locked=True) == {}

    def test_guess_drops_declared_unless_all(self, tmp_path):
        """Test that guess drops declared packages unless asked for all."""
        backend = FakeBackend(tmp_path, declared={"a": ""}, guessed={"b": True, "a": True})
        backend._write_spec()
        assert commands.run_guess(backend) == ["b"]
        assert commands.run_guess(backend, include_declared=True) == ["a", "b"]

    def test_info(self, tmp_path):
        """Test the info command."""
        backend = FakeBackend(tmp_path)
        assert commands.run_info(backend, "known").name == "known"
        assert commands.run_info(backend, "unknown") is None
