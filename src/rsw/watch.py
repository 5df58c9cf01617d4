"""Watch engine: rebuilds crates when their sources change."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

from . import runner as _runner
from .config import CrateConfig, RswConfig, WatchSettings
from .debounce import CrateDebouncer, RebuildScheduler
from .dispatcher import BuildDispatcher
from .exceptions import CrateRootNotFoundError, WatchAlreadyRunningError
from .fs_watcher import FSWatcherPool
from .models import BuildMode, BuildOutcome, BuildSummary, ChangeEvent, RebuildTrigger
from .notify import NotifyHook


logger = logging.getLogger(__name__)

FailureHook = Callable[[CrateConfig, Path, BuildOutcome], None]


class WatchEngine:
    """
    Main orchestrator for `rsw watch`.

    Runs the initial build pass, then starts one filesystem observer per
    watched crate. Change events are debounced per crate by a flush loop
    and handed to a single-flight scheduler that rebuilds only the crate
    that changed.
    """

    def __init__(
        self,
        config: RswConfig,
        notify_hook: Optional[NotifyHook] = None,
        on_failure: Optional[FailureHook] = None,
        settings: Optional[WatchSettings] = None,
        dispatcher: Optional[BuildDispatcher] = None,
        run: Optional[_runner.Runner] = None,
    ):
        """
        Initialize the watch engine.

        Args:
            config: Validated project configuration
            notify_hook: Called after every successful rebuild
            on_failure: Called after every failed rebuild
            settings: Watch settings (default: debounce from config.interval)
            dispatcher: Build dispatcher (default: one built from config and run)
            run: Process runner used when no dispatcher is given
        """
        self.config = config
        self.settings = settings or WatchSettings.from_config(config)
        self.notify_hook = notify_hook
        self.on_failure = on_failure
        self.dispatcher = dispatcher or BuildDispatcher(config, run=run)

        self._debouncer = CrateDebouncer(self.settings.debounce_ms)
        self._scheduler = RebuildScheduler(self._rebuild)
        self._fs_watcher_pool = FSWatcherPool(self._on_change, self.settings)

        self._running = False
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def _on_change(self, event: ChangeEvent) -> None:
        """Callback for filesystem observers."""
        logger.debug(f"Change in {event.crate_name}: {event.path}")
        self._debouncer.add(event)

    def trigger(self, crate_name: str, path: Path) -> None:
        """Report a change for a crate as if its observer had seen it."""
        self._on_change(ChangeEvent(crate_name=crate_name, path=Path(path)))

    def initial_build(self) -> BuildSummary:
        """Build and link every watched crate once."""
        return self.dispatcher.dispatch(BuildMode.WATCH, link=True)

    def watch_crates(self) -> List[str]:
        """
        Start an observer for every crate with `watch.run`.

        A crate whose directory cannot be watched is logged and skipped.

        Returns:
            Names of the crates now being watched
        """
        watched = []
        base_dir = self.config.base_dir

        for crate in self.config.actionable(BuildMode.WATCH):
            crate_dir = Path(crate.crate_dir(base_dir))
            excluded = [Path(crate.out_path(base_dir)), crate_dir / "target"]
            try:
                self._fs_watcher_pool.start_watching(crate.name, crate_dir, excluded)
            except CrateRootNotFoundError as e:
                logger.error(f"Not watching {crate.name}: {e}")
                continue
            logger.info(f"Watching {crate.name}: {crate_dir}")
            watched.append(crate.name)

        return watched

    def start_async(self) -> BuildSummary:
        """
        Run the initial pass and start watching in background threads.

        Returns immediately after the initial pass. If no crate is
        actionable for watch mode, nothing is started.

        Returns:
            Summary of the initial pass

        Raises:
            WatchAlreadyRunningError: If already running
        """
        with self._lock:
            if self._running:
                raise WatchAlreadyRunningError("Watch engine is already running")
            self._running = True
            self._stop_event.clear()

        summary = self.initial_build()
        if summary.no_crates:
            with self._lock:
                self._running = False
            return summary

        self.watch_crates()

        self._threads = [
            threading.Thread(target=self._flush_loop, name="FlushLoop"),
        ]
        for thread in self._threads:
            thread.daemon = True
            thread.start()

        return summary

    def start(self) -> BuildSummary:
        """
        Run the watch engine (blocking).

        Blocks until stop() is called or the process is interrupted.

        Returns:
            Summary of the initial pass
        """
        summary = self.start_async()
        if summary.no_crates:
            return summary

        try:
            while not self._stop_event.is_set():
                self._stop_event.wait(timeout=0.5)
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping watch...")
        finally:
            self._shutdown()

        return summary

    def stop(self) -> None:
        """Stop watching and wait briefly for in-flight rebuilds."""
        self._stop_event.set()
        self._shutdown()

    def _shutdown(self) -> None:
        """Internal shutdown procedure."""
        with self._lock:
            if not self._running:
                return
            self._running = False

        self._stop_event.set()
        self._fs_watcher_pool.stop_all()
        self._scheduler.close()
        self._debouncer.clear()

        for thread in self._threads:
            if thread.is_alive():
                thread.join(timeout=2.0)
        self._threads.clear()

        if not self._scheduler.join(timeout=self.settings.join_timeout):
            logger.warning(f"Abandoning in-flight rebuilds: {', '.join(self._scheduler.active())}")

    def _flush_loop(self) -> None:
        """Worker loop that hands debounced triggers to the scheduler."""
        flush_interval = self.settings.flush_interval_ms / 1000.0
        logger.debug(f"Flush loop started, interval={flush_interval}s")

        while not self._stop_event.is_set():
            for trigger in self._debouncer.flush(time.time()):
                logger.debug(
                    f"Rebuild {trigger.crate_name} after {trigger.event_count} event(s)"
                )
                self._scheduler.submit(trigger)

            self._stop_event.wait(timeout=flush_interval)

    def _rebuild(self, trigger: RebuildTrigger) -> None:
        """Rebuild one crate; runs in the scheduler's worker thread."""
        crate = self.config.get_crate(trigger.crate_name)
        if crate is None:
            logger.warning(f"Change reported for unknown crate: {trigger.crate_name}")
            return

        logger.info(f"[watch] {crate.name} changed: {trigger.path}")
        outcome = self.dispatcher.build_crate(crate, BuildMode.WATCH)

        if not outcome.success:
            self._call_hook(self.on_failure, crate, trigger.path, outcome)
            return

        if not self.config.link_on_initial_only and self.dispatcher.register_link(crate):
            self.dispatcher.link()

        self._call_hook(self.notify_hook, crate, trigger.path)

    def _call_hook(self, hook: Optional[Callable], *args) -> None:
        """Invoke a hook; its exceptions never reach the watch loop."""
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception(f"Notification hook failed for {args[0].name}")

    def get_watched(self) -> List[str]:
        return self._fs_watcher_pool.get_watched()

    @property
    def is_running(self) -> bool:
        """Check if the engine is running."""
        return self._running

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


def run_watch(
    config: RswConfig,
    notify_hook: Optional[NotifyHook] = None,
    on_failure: Optional[FailureHook] = None,
    settings: Optional[WatchSettings] = None,
    run: Optional[_runner.Runner] = None,
) -> BuildSummary:
    """Build, link and watch until interrupted."""
    engine = WatchEngine(
        config,
        notify_hook=notify_hook,
        on_failure=on_failure,
        settings=settings,
        run=run,
    )
    return engine.start()
