"""Per-crate debouncing and single-flight rebuild scheduling."""

import logging
import threading
from typing import Callable, Dict, List

from .models import ChangeEvent, RebuildTrigger


logger = logging.getLogger(__name__)


class CrateDebouncer:
    """
    Coalesces bursts of change events into one trigger per crate.

    A crate's trigger becomes ready once no new event for that crate
    has arrived for a full debounce window (trailing edge). The trigger
    carries the most recent changed path.
    """

    def __init__(self, debounce_ms: int = 50):
        """
        Initialize the debouncer.

        Args:
            debounce_ms: Debounce window in milliseconds
        """
        self.debounce_ms = debounce_ms
        self._pending: Dict[str, RebuildTrigger] = {}
        self._lock = threading.Lock()

    def add(self, event: ChangeEvent) -> None:
        """
        Add a change event, restarting the crate's debounce window.

        Args:
            event: The change event to add
        """
        with self._lock:
            existing = self._pending.get(event.crate_name)
            count = existing.event_count + 1 if existing else 1
            self._pending[event.crate_name] = RebuildTrigger(
                crate_name=event.crate_name,
                path=event.path,
                event_count=count,
                timestamp=event.timestamp,
            )

    def flush(self, current_time: float) -> List[RebuildTrigger]:
        """
        Flush triggers whose last event is older than the debounce window.

        Args:
            current_time: Current timestamp

        Returns:
            List of triggers ready to run
        """
        window_sec = self.debounce_ms / 1000.0
        ready = []

        with self._lock:
            for name, trigger in list(self._pending.items()):
                if (current_time - trigger.timestamp) >= window_sec:
                    ready.append(trigger)
                    del self._pending[name]

        return ready

    def flush_all(self) -> List[RebuildTrigger]:
        """Flush all pending triggers regardless of time."""
        with self._lock:
            triggers = list(self._pending.values())
            self._pending.clear()
            return triggers

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def clear(self) -> None:
        """Clear all pending triggers."""
        with self._lock:
            self._pending.clear()


class RebuildScheduler:
    """
    Runs rebuilds with at most one in flight per crate.

    Each crate gets its own worker thread while a rebuild is running,
    so different crates rebuild concurrently. Triggers submitted while
    a crate is building collapse into one pending trigger that the
    worker picks up as soon as the current rebuild returns.
    """

    def __init__(self, rebuild: Callable[[RebuildTrigger], None]):
        """
        Initialize the scheduler.

        Args:
            rebuild: Called in a worker thread for every trigger run;
                exceptions are logged and do not stop the worker
        """
        self._rebuild = rebuild
        self._in_flight: Dict[str, threading.Thread] = {}
        self._pending: Dict[str, RebuildTrigger] = {}
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, trigger: RebuildTrigger) -> bool:
        """
        Schedule a rebuild.

        Args:
            trigger: The debounced trigger

        Returns:
            True if a rebuild started now, False if it was queued behind
            an in-flight rebuild or the scheduler is closed
        """
        name = trigger.crate_name

        with self._lock:
            if self._closed:
                return False

            if name in self._in_flight:
                queued = self._pending.get(name)
                if queued:
                    trigger = RebuildTrigger(
                        crate_name=name,
                        path=trigger.path,
                        event_count=queued.event_count + trigger.event_count,
                        timestamp=trigger.timestamp,
                    )
                self._pending[name] = trigger
                logger.debug(f"{name} is already rebuilding, queued {trigger.path}")
                return False

            thread = threading.Thread(
                target=self._worker,
                args=(trigger,),
                name=f"Rebuild-{name}",
                daemon=True,
            )
            self._in_flight[name] = thread

        thread.start()
        return True

    def _worker(self, trigger: RebuildTrigger) -> None:
        """Run the trigger, then any trigger queued meanwhile."""
        name = trigger.crate_name

        while True:
            try:
                self._rebuild(trigger)
            except Exception:
                logger.exception(f"Rebuild of {name} raised")

            with self._lock:
                next_trigger = self._pending.pop(name, None)
                if next_trigger is None or self._closed:
                    self._in_flight.pop(name, None)
                    return

            trigger = next_trigger

    def is_building(self, crate_name: str) -> bool:
        with self._lock:
            return crate_name in self._in_flight

    def active(self) -> List[str]:
        """Return names of crates with a rebuild in flight."""
        with self._lock:
            return list(self._in_flight.keys())

    def join(self, timeout: float = 5.0) -> bool:
        """
        Wait for in-flight rebuilds to finish.

        Args:
            timeout: Seconds to wait for each worker

        Returns:
            True if no rebuild is still running
        """
        with self._lock:
            threads = list(self._in_flight.values())

        for thread in threads:
            thread.join(timeout=timeout)

        return not any(t.is_alive() for t in threads)

    def close(self) -> None:
        """Stop accepting triggers and drop queued ones."""
        with self._lock:
            self._closed = True
            self._pending.clear()
