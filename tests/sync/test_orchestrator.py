"""Tests for the sync orchestrator."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from pairsync.core.config import ConfigurationError, SyncConfig
from pairsync.core.types import ServiceState
from pairsync.sync import operations
from pairsync.sync import pair as pair_module
from pairsync.sync.orchestrator import SyncOrchestrator
from pairsync.sync.pair import PairSynchronizer
from pairsync.sync.tree import TreeSynchronizer


def _config(base_dirs: dict[str, Path], **extra: object) -> SyncConfig:
    raw: dict[str, object] = {
        "baseDirs": {key: str(path) for key, path in base_dirs.items()},
        "syncPairs": [
            {
                "name": "notes",
                "source": {"baseDir": "a", "path": "notes.txt"},
                "target": {"baseDir": "b", "path": "notes.txt"},
            }
        ],
        "syncDirs": [
            {
                "name": "docs",
                "source": {"baseDir": "a", "path": "docs"},
                "target": {"baseDir": "b", "path": "docs"},
            }
        ],
    }
    raw.update(extra)
    return SyncConfig.model_validate(raw)


@pytest.fixture
def orchestrator(base_dirs: dict[str, Path]) -> Iterator[SyncOrchestrator]:
    orch = SyncOrchestrator(_config(base_dirs), debounce_s=0.05, cooldown_s=0.3)
    yield orch
    orch.stop()


class TestLifecycle:
    """Tests for start, stop and restart."""

    def test_initially_stopped(self, orchestrator: SyncOrchestrator) -> None:
        """Should start out stopped."""
        assert orchestrator.state is ServiceState.STOPPED
        assert orchestrator.is_running is False
        assert orchestrator.get_status()["isRunning"] is False

    def test_start(self, orchestrator: SyncOrchestrator) -> None:
        """Should build one synchronizer per mapping and run."""
        status = orchestrator.start()

        assert orchestrator.state is ServiceState.RUNNING
        assert status["isRunning"] is True
        assert [pair["name"] for pair in status["syncPairs"]] == ["notes", "docs"]
        assert [pair["type"] for pair in status["syncPairs"]] == ["file", "directory"]
        kinds = [type(sync) for sync in orchestrator.synchronizers]
        assert kinds == [PairSynchronizer, TreeSynchronizer]
        assert orchestrator.wait_until_reconciled(timeout=5)

    def test_start_is_idempotent(self, orchestrator: SyncOrchestrator) -> None:
        """Should not rebuild synchronizers when already running."""
        orchestrator.start()
        first = orchestrator.synchronizers

        orchestrator.start()

        assert orchestrator.synchronizers == first

    def test_stop(self, orchestrator: SyncOrchestrator) -> None:
        """Should close watchers and report stopped."""
        orchestrator.start()
        watchers = [w for sync in orchestrator.synchronizers for w in sync.watchers.values()]

        status = orchestrator.stop()

        assert status["isRunning"] is False
        assert status["state"] == "stopped"
        assert status["uptimeSeconds"] == 0
        assert orchestrator.synchronizers == []
        assert all(not watcher.is_running for watcher in watchers)

    def test_stop_when_stopped(self, orchestrator: SyncOrchestrator) -> None:
        """Should do nothing when not running."""
        assert orchestrator.stop()["state"] == "stopped"

    def test_restart_reloads(self, base_dirs: dict[str, Path]) -> None:
        """Should pick up a new configuration from the loader."""
        configs = [_config(base_dirs), _config(base_dirs, syncDirs=[])]
        orch = SyncOrchestrator(config_loader=lambda: configs.pop(0), debounce_s=0.05)
        try:
            assert len(orch.start()["syncPairs"]) == 2
            status = orch.restart()

            assert status["isRunning"] is True
            assert orch.state is ServiceState.RUNNING
            assert [pair["name"] for pair in status["syncPairs"]] == ["notes"]
        finally:
            orch.stop()

    def test_restart_keeps_config_on_reload_failure(self, base_dirs: dict[str, Path]) -> None:
        """Should keep the previous configuration if the reload fails."""

        def failing_loader() -> SyncConfig:
            raise ConfigurationError("Configuration file not found: gone.yaml")

        orch = SyncOrchestrator(_config(base_dirs), config_loader=failing_loader, debounce_s=0.05)
        try:
            orch.start()
            status = orch.restart()

            assert status["isRunning"] is True
            assert len(status["syncPairs"]) == 2
        finally:
            orch.stop()

    def test_start_without_config(self) -> None:
        """Should raise and stay stopped without a configuration."""
        orch = SyncOrchestrator()

        with pytest.raises(ConfigurationError):
            orch.start()
        assert orch.state is ServiceState.STOPPED


class TestMappingSetup:
    """Tests for building synchronizers from a configuration."""

    def test_bad_mapping_skipped(
        self, base_dirs: dict[str, Path], caplog: pytest.LogCaptureFixture
    ) -> None:
        """Should skip a mapping with an unknown base directory and keep the rest."""
        config = _config(
            base_dirs,
            syncPairs=[
                {
                    "name": "broken",
                    "source": {"baseDir": "nope", "path": "x"},
                    "target": {"baseDir": "b", "path": "x"},
                }
            ],
        )
        orch = SyncOrchestrator(config, debounce_s=0.05)
        try:
            status = orch.start()
        finally:
            orch.stop()

        assert [pair["name"] for pair in status["syncPairs"]] == ["docs"]
        assert "[broken] Skipping mapping" in caplog.text

    def test_independent_orchestrators(self, base_dirs: dict[str, Path]) -> None:
        """Should not share operation registries between orchestrators."""
        first = SyncOrchestrator(_config(base_dirs))
        second = SyncOrchestrator(_config(base_dirs))

        assert first.dedup is not second.dedup


class TestSyncing:
    """End-to-end tests through the orchestrator."""

    def test_reconcile_once(self, base_dirs: dict[str, Path]) -> None:
        """Should reconcile every mapping and report copies per mapping."""
        (base_dirs["a"] / "notes.txt").write_text("hello")
        (base_dirs["b"] / "docs").mkdir()
        (base_dirs["b"] / "docs" / "readme.md").write_text("# docs")
        orch = SyncOrchestrator(_config(base_dirs))

        assert orch.reconcile() == {"notes": 1, "docs": 1}
        assert (base_dirs["b"] / "notes.txt").read_text() == "hello"
        assert (base_dirs["a"] / "docs" / "readme.md").read_text() == "# docs"
        assert orch.is_running is False

    def test_file_scenario(
        self, orchestrator: SyncOrchestrator, base_dirs: dict[str, Path],
        wait_for: Callable[..., bool],
    ) -> None:
        """Should reconcile a file, then mirror later edits without looping."""
        source = base_dirs["a"] / "notes.txt"
        target = base_dirs["b"] / "notes.txt"
        source.write_text("hello")

        orchestrator.start()
        assert orchestrator.wait_until_reconciled(timeout=5)
        assert target.read_text() == "hello"
        # Let the reconciliation tokens expire
        time.sleep(0.5)

        target.write_text("edited on b")
        assert wait_for(lambda: source.read_text() == "edited on b")
        assert "notes" in orchestrator.get_status()["lastSyncTimes"]

    def test_tree_scenario(
        self, orchestrator: SyncOrchestrator, base_dirs: dict[str, Path],
        wait_for: Callable[..., bool],
    ) -> None:
        """Should reconcile a tree, then mirror new files and deletions."""
        source_root = base_dirs["a"] / "docs"
        target_root = base_dirs["b"] / "docs"
        (source_root / "sub").mkdir(parents=True)
        (source_root / "sub" / "y").write_text("2")

        orchestrator.start()
        assert orchestrator.wait_until_reconciled(timeout=5)
        assert (target_root / "sub" / "y").read_text() == "2"
        time.sleep(0.5)

        (target_root / "new.txt").write_text("from b")
        assert wait_for(lambda: (source_root / "new.txt").exists())

        (source_root / "sub" / "y").unlink()
        assert wait_for(lambda: not (target_root / "sub" / "y").exists())

    def test_burst_copied_once_without_echo(
        self, base_dirs: dict[str, Path], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should coalesce rapid writes into one copy and never copy back."""
        calls: list[tuple[Path, Path]] = []

        def counting_copy(source: Path, target: Path) -> bool:
            calls.append((source, target))
            return operations.copy_file(source, target)

        monkeypatch.setattr(pair_module, "copy_file", counting_copy)
        source = base_dirs["a"] / "notes.txt"
        target = base_dirs["b"] / "notes.txt"
        orch = SyncOrchestrator(_config(base_dirs, syncDirs=[]), debounce_s=0.5, cooldown_s=1.0)
        try:
            orch.start()
            assert orch.wait_until_reconciled(timeout=5)

            for i in range(5):
                source.write_text(f"edit {i}")
                time.sleep(0.05)
            # Debounce window, cooldown and the echo's own debounce
            time.sleep(2.5)
        finally:
            orch.stop()

        assert calls == [(source, target)]
        assert target.read_text() == "edit 4"
