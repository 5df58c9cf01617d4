"""Tests for watch engine module."""

import pytest
import time
from pathlib import Path

from rsw.config import RswConfig, WatchSettings
from rsw.exceptions import WatchAlreadyRunningError
from rsw.watch import WatchEngine, run_watch

from conftest import FakeRunner, make_crate, wait_for


def fast_settings():
    return WatchSettings(debounce_ms=50, flush_interval_ms=10, join_timeout=2.0)


@pytest.fixture
def engine_factory():
    engines = []

    def factory(config, runner, **kwargs):
        engine = WatchEngine(config, settings=fast_settings(), run=runner, **kwargs)
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        engine.stop()


class TestInitialPass:
    """Tests for the initial build of watch mode."""

    def test_initial_build_before_watching(self, watch_config, engine_factory):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)

        summary = engine.start_async()

        assert summary.built == ["x", "y"]
        assert all(c.args[-1] == "--dev" for c in runner.builds())
        assert sorted(engine.get_watched()) == ["x", "y"]
        assert engine.is_running

    def test_initial_link(self, watch_config, engine_factory, project):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)

        engine.start_async()

        links = runner.links()
        assert len(links) == 1
        assert links[0].args == ["link", str(project / "crates" / "x" / "pkg")]

    def test_no_crates_selected(self, project, engine_factory):
        config = RswConfig(crates=(make_crate("x", watch=False),), base_dir=project)
        runner = FakeRunner()
        engine = engine_factory(config, runner)

        summary = engine.start_async()

        assert summary.no_crates is True
        assert runner.calls == []
        assert engine.get_watched() == []
        assert engine.is_running is False

    def test_only_watch_crates_monitored(self, project, engine_factory):
        config = RswConfig(
            crates=(make_crate("x"), make_crate("y", watch=False)),
            base_dir=project,
        )
        engine = engine_factory(config, FakeRunner())

        engine.start_async()

        assert engine.get_watched() == ["x"]

    def test_missing_crate_dir_skipped(self, project, engine_factory):
        config = RswConfig(
            crates=(make_crate("x"), make_crate("ghost"), make_crate("y")),
            base_dir=project,
        )
        engine = engine_factory(config, FakeRunner())

        engine.start_async()

        assert sorted(engine.get_watched()) == ["x", "y"]

    def test_already_running(self, watch_config, engine_factory):
        engine = engine_factory(watch_config, FakeRunner())
        engine.start_async()

        with pytest.raises(WatchAlreadyRunningError):
            engine.start_async()


class TestRebuild:
    """Tests for change-triggered rebuilds."""

    def test_burst_yields_one_rebuild(self, watch_config, engine_factory):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)
        engine.start_async()

        for i in range(5):
            engine.trigger("x", Path(f"src/f{i}.rs"))

        assert wait_for(lambda: len(runner.builds("x")) == 2)
        time.sleep(0.3)
        assert len(runner.builds("x")) == 2
        assert len(runner.builds("y")) == 1

    def test_event_during_rebuild_yields_one_more(self, watch_config, engine_factory):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)
        engine.start_async()
        gate = runner.hold("x")

        for i in range(5):
            engine.trigger("x", Path(f"src/f{i}.rs"))
        assert wait_for(lambda: len(runner.builds("x")) == 2)

        engine.trigger("x", Path("src/late.rs"))
        time.sleep(0.2)
        assert len(runner.builds("x")) == 2

        gate.set()
        assert wait_for(lambda: len(runner.builds("x")) == 3)
        time.sleep(0.3)
        assert len(runner.builds("x")) == 3

    def test_slow_crate_does_not_delay_other(self, watch_config, engine_factory):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)
        engine.start_async()
        gate = runner.hold("x")

        engine.trigger("x", Path("src/lib.rs"))
        assert wait_for(lambda: len(runner.builds("x")) == 2)

        engine.trigger("y", Path("src/lib.rs"))
        assert wait_for(lambda: len(runner.builds("y")) == 2)
        assert not gate.is_set()

        gate.set()

    def test_rebuild_only_changed_crate(self, watch_config, engine_factory):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)
        engine.start_async()

        engine.trigger("y", Path("src/lib.rs"))

        assert wait_for(lambda: len(runner.builds("y")) == 2)
        time.sleep(0.2)
        assert len(runner.builds("x")) == 1

    def test_rebuild_on_file_change(self, watch_config, engine_factory, project):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)
        engine.start_async()

        time.sleep(0.2)
        (project / "crates" / "x" / "src" / "lib.rs").write_text("pub fn hi() {}")

        assert wait_for(lambda: len(runner.builds("x")) >= 2)

    def test_output_changes_do_not_rebuild(self, watch_config, engine_factory, project):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)
        engine.start_async()

        time.sleep(0.2)
        pkg = project / "crates" / "x" / "pkg"
        pkg.mkdir()
        (pkg / "x.js").write_text("generated")

        time.sleep(0.5)
        assert len(runner.builds("x")) == 1

    def test_no_relink_on_rebuild_by_default(self, watch_config, engine_factory):
        runner = FakeRunner()
        engine = engine_factory(watch_config, runner)
        engine.start_async()

        engine.trigger("x", Path("src/lib.rs"))

        assert wait_for(lambda: len(runner.builds("x")) == 2)
        time.sleep(0.1)
        assert len(runner.links()) == 1

    def test_relink_on_rebuild_when_enabled(self, project, engine_factory):
        config = RswConfig(
            crates=(make_crate("x", link=True), make_crate("y")),
            cli="npm",
            link_on_initial_only=False,
            base_dir=project,
        )
        runner = FakeRunner()
        engine = engine_factory(config, runner)
        engine.start_async()

        engine.trigger("x", Path("src/lib.rs"))
        engine.trigger("y", Path("src/lib.rs"))

        assert wait_for(lambda: len(runner.links()) == 2)
        time.sleep(0.2)
        assert len(runner.links()) == 2
        assert runner.links()[1].args == ["link", str(project / "crates" / "x" / "pkg")]


class TestNotification:
    """Tests for the notification hooks."""

    def test_hook_called_on_success(self, watch_config, engine_factory):
        calls = []
        engine = engine_factory(
            watch_config,
            FakeRunner(),
            notify_hook=lambda crate, path: calls.append((crate.name, path)),
        )
        engine.start_async()

        engine.trigger("x", Path("src/lib.rs"))

        assert wait_for(lambda: calls == [("x", Path("src/lib.rs"))])

    def test_hook_not_called_on_initial_pass(self, watch_config, engine_factory):
        calls = []
        engine = engine_factory(watch_config, FakeRunner(), notify_hook=lambda c, p: calls.append(c))
        engine.start_async()

        time.sleep(0.2)
        assert calls == []

    def test_failure_hook(self, watch_config, engine_factory):
        ok, failed = [], []
        runner = FakeRunner(statuses={"x": 1})
        engine = engine_factory(
            watch_config,
            runner,
            notify_hook=lambda crate, path: ok.append(crate.name),
            on_failure=lambda crate, path, outcome: failed.append((crate.name, outcome.exit_status)),
        )
        engine.start_async()

        engine.trigger("x", Path("src/lib.rs"))

        assert wait_for(lambda: failed == [("x", 1)])
        assert ok == []

    def test_hook_exception_does_not_stop_watching(self, watch_config, engine_factory):
        calls = []

        def hook(crate, path):
            calls.append(path)
            raise RuntimeError("notifier down")

        runner = FakeRunner()
        engine = engine_factory(watch_config, runner, notify_hook=hook)
        engine.start_async()

        engine.trigger("x", Path("src/a.rs"))
        assert wait_for(lambda: len(calls) == 1)

        engine.trigger("x", Path("src/b.rs"))
        assert wait_for(lambda: len(calls) == 2)
        assert len(runner.builds("x")) == 3


class TestLifecycle:
    """Tests for starting and stopping the engine."""

    def test_stop(self, watch_config):
        engine = WatchEngine(watch_config, settings=fast_settings(), run=FakeRunner())
        engine.start_async()

        engine.stop()

        assert engine.is_running is False
        assert engine.get_watched() == []

    def test_stop_is_idempotent(self, watch_config):
        engine = WatchEngine(watch_config, settings=fast_settings(), run=FakeRunner())
        engine.start_async()
        engine.stop()
        engine.stop()
        assert engine.is_running is False

    def test_context_manager(self, watch_config):
        with WatchEngine(watch_config, settings=fast_settings(), run=FakeRunner()) as engine:
            engine.start_async()
            assert engine.is_running
        assert engine.is_running is False

    def test_run_watch_no_crates_returns(self, project):
        config = RswConfig(crates=(make_crate("x", watch=False),), base_dir=project)
        summary = run_watch(config, settings=fast_settings(), run=FakeRunner())
        assert summary.no_crates is True
