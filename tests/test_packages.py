"""
Tests for the packages domain — world file diff and apply.
"""

import itertools

import pytest

from declarative_alpine.adapters.mock import MockCommandRunner
from declarative_alpine.core.declarations.packages import PackagesDeclaration
from declarative_alpine.core.errors import ExternalCommandError, StoreUnavailableError
from declarative_alpine.core.models.state import PackagesDiff


@pytest.fixture
def packages(system, runner) -> PackagesDeclaration:
    return PackagesDeclaration(system, runner)


class TestGetCurrent:
    def test_reads_world(self, packages):
        assert packages.get_current() == frozenset({"vim", "curl"})

    def test_missing_world_fails(self, packages, system):
        system.world_file.unlink()
        with pytest.raises(StoreUnavailableError):
            packages.get_current()

    def test_rebuilt_on_every_call(self, packages, system):
        assert "htop" not in packages.get_current()
        system.world_file.write_text("htop\n")
        assert packages.get_current() == frozenset({"htop"})


class TestComputeDiff:
    def test_scenario_install_and_remove(self, packages):
        """desired [git, vim] against world {vim, curl}."""
        diff = packages.compute_diff(packages.get_current(), ["git", "vim"])
        assert diff.to_install == {"git"}
        assert diff.to_remove == {"curl"}

    def test_duplicates_collapse(self, packages):
        diff = packages.compute_diff(frozenset(), ["git", "git", "vim"])
        assert diff.to_install == {"git", "vim"}

    def test_empty_desired_removes_everything(self, packages):
        """An empty package list is destructive: every tracked atom goes."""
        current = packages.get_current()
        diff = packages.compute_diff(current, [])
        assert diff.to_remove == current
        assert diff.to_install == frozenset()

    def test_set_algebra(self, packages):
        universe = ["a", "b", "c", "d"]
        subsets = [
            frozenset(c)
            for n in range(len(universe) + 1)
            for c in itertools.combinations(universe, n)
        ]
        for current, desired in itertools.product(subsets, repeat=2):
            diff = packages.compute_diff(current, sorted(desired))
            assert diff.to_install == desired - current
            assert diff.to_remove == current - desired
            assert not diff.to_install & diff.to_remove

    def test_inputs_not_mutated(self, packages):
        current = frozenset({"vim"})
        desired = ["git"]
        packages.compute_diff(current, desired)
        assert current == {"vim"}
        assert desired == ["git"]

    def test_in_sync_is_empty(self, packages):
        assert packages.compute_diff(frozenset({"vim"}), ["vim"]).is_empty


class TestApply:
    def test_apply_rewrites_world_and_upgrades(self, packages, system, runner):
        diff = packages.compute_diff(packages.get_current(), ["git", "vim"])
        result = packages.apply(diff)

        assert system.world_file.read_text() == "git\nvim\n"
        assert runner.call_log == [["apk", "upgrade"]]
        assert result.changes == ["+ git", "- curl"]
        assert result.backups == [system.world_file.with_name("world.bak")]

    def test_backup_holds_pre_write_content(self, packages, system):
        before = system.world_file.read_text()
        packages.apply(PackagesDiff(to_install=frozenset({"git"})))
        assert system.world_file.with_name("world.bak").read_text() == before

    def test_dry_run_touches_nothing(self, packages, system, runner, host, snapshot):
        before = snapshot()
        diff = packages.compute_diff(packages.get_current(), [])
        result = packages.apply(diff, dry_run=True)

        assert snapshot() == before
        assert list(host.rglob("*.bak")) == []
        assert runner.call_count == 0
        assert result.dry_run
        assert result.changes == ["- curl", "- vim"]

    def test_missing_package_manager_fails_before_backup(self, system, host):
        packages = PackagesDeclaration(system, MockCommandRunner(available=False))
        with pytest.raises(ExternalCommandError, match="apk: command not found"):
            packages.apply(PackagesDiff(to_install=frozenset({"git"})))
        assert system.world_file.read_text() == "vim\ncurl\n"
        assert list(host.rglob("*.bak")) == []

    def test_upgrade_failure_rolls_back(self, packages, system, runner):
        runner.set_failure("apk", error="ERROR: unable to select packages: git")
        before = system.world_file.read_text()

        with pytest.raises(ExternalCommandError) as exc:
            packages.apply(PackagesDiff(to_install=frozenset({"git"})))

        assert system.world_file.read_text() == before
        assert "unable to select packages" in str(exc.value)
        assert exc.value.stderr == "ERROR: unable to select packages: git"
        assert exc.value.command == ["apk", "upgrade"]

    def test_backup_kept_after_success(self, packages, system):
        packages.apply(PackagesDiff(to_remove=frozenset({"curl"})))
        assert system.world_file.with_name("world.bak").exists()

    def test_empty_diff_is_a_noop(self, packages, system, runner):
        packages.apply(PackagesDiff())
        assert runner.call_count == 0
        assert not system.world_file.with_name("world.bak").exists()

    def test_apply_rereads_current(self, packages, system):
        """Atoms added to the world after the diff was computed survive."""
        diff = packages.compute_diff(packages.get_current(), ["vim", "curl", "git"])
        system.world_file.write_text("vim\ncurl\nhtop\n")
        packages.apply(diff)
        assert set(system.world_file.read_text().split()) == {"vim", "curl", "htop", "git"}

    def test_idempotent(self, packages):
        desired = ["git", "vim"]
        packages.apply(packages.compute_diff(packages.get_current(), desired))
        assert packages.compute_diff(packages.get_current(), desired).is_empty

    def test_custom_upgrade_command(self, system, runner):
        system.upgrade_command = ["apk", "upgrade", "--available"]
        decl = PackagesDeclaration(system, runner)
        decl.apply(PackagesDiff(to_install=frozenset({"git"})))
        assert runner.call_log == [["apk", "upgrade", "--available"]]
