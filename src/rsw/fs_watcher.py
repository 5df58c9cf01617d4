"""Crate source monitoring using the watchdog library."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from .config import WatchSettings
from .exceptions import CrateRootNotFoundError
from .models import ChangeEvent


logger = logging.getLogger(__name__)


class CrateEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to ChangeEvents for one crate."""

    def __init__(
        self,
        callback: Callable[[ChangeEvent], None],
        settings: WatchSettings,
        crate_name: str,
        excluded: Sequence[Path] = (),
    ):
        """
        Initialize the handler.

        Args:
            callback: Receives one ChangeEvent per relevant change
            settings: Watch settings with ignore patterns
            crate_name: Crate this handler reports for
            excluded: Directories whose contents never trigger a rebuild
                (build output, cargo target)
        """
        super().__init__()
        self.callback = callback
        self.settings = settings
        self.crate_name = crate_name
        self.excluded = [p.resolve() for p in excluded]

    def _should_ignore(self, path: str) -> bool:
        """Check if the path should be ignored."""
        p = Path(path)
        if self.settings.should_ignore(p):
            return True
        resolved = p.resolve()
        return any(resolved == ex or resolved.is_relative_to(ex) for ex in self.excluded)

    def _emit(self, path: str, is_directory: bool):
        # Directory modified events only echo changes to their children.
        if is_directory:
            return
        if self._should_ignore(path):
            return
        self.callback(ChangeEvent(
            crate_name=self.crate_name,
            path=Path(path),
            timestamp=time.time(),
        ))

    def on_created(self, event):
        self._emit(event.src_path, event.is_directory)

    def on_deleted(self, event):
        self._emit(event.src_path, event.is_directory)

    def on_modified(self, event):
        self._emit(event.src_path, event.is_directory)

    def on_moved(self, event):
        self._emit(event.dest_path, event.is_directory)


class FSWatcherPool:
    """
    Manages watchdog observers, one per watched crate.

    Each observer runs in its own thread and reports into the same
    callback.
    """

    def __init__(
        self,
        event_callback: Callable[[ChangeEvent], None],
        settings: Optional[WatchSettings] = None,
    ):
        """
        Initialize the watcher pool.

        Args:
            event_callback: Callback for change events
            settings: Watch settings
        """
        self.event_callback = event_callback
        self.settings = settings or WatchSettings()
        self._observers: Dict[str, Observer] = {}
        self._roots: Dict[str, Path] = {}
        self._lock = threading.Lock()

    def start_watching(
        self,
        crate_name: str,
        root: Path,
        excluded: Sequence[Path] = (),
    ) -> bool:
        """
        Start watching a crate directory.

        Args:
            crate_name: Crate the directory belongs to
            root: Crate source directory
            excluded: Directories to ignore under root

        Returns:
            True if watching started, False if the crate is already watched

        Raises:
            CrateRootNotFoundError: If root is missing or not a directory
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise CrateRootNotFoundError(f"Crate directory does not exist: {root}")

        with self._lock:
            if crate_name in self._observers:
                return False

            observer = Observer()
            handler = CrateEventHandler(
                self.event_callback, self.settings, crate_name, excluded
            )
            try:
                observer.schedule(handler, str(root), recursive=self.settings.recursive)
                observer.start()
            except OSError as e:
                raise CrateRootNotFoundError(f"Cannot watch {root}: {e}") from e

            self._observers[crate_name] = observer
            self._roots[crate_name] = root
            logger.debug(f"Watching {crate_name}: {root}")
            return True

    def stop_watching(self, crate_name: str) -> bool:
        """
        Stop watching a crate.

        Returns:
            True if watching stopped, False if the crate was not watched
        """
        with self._lock:
            if crate_name not in self._observers:
                return False

            observer = self._observers.pop(crate_name)
            self._roots.pop(crate_name, None)

            observer.stop()
            observer.join(timeout=5.0)
            return True

    def stop_all(self) -> int:
        """
        Stop all watchers.

        Returns:
            Number of watchers stopped
        """
        with self._lock:
            count = len(self._observers)

            for observer in self._observers.values():
                observer.stop()

            for observer in self._observers.values():
                observer.join(timeout=5.0)

            self._observers.clear()
            self._roots.clear()
            return count

    def is_watching(self, crate_name: str) -> bool:
        with self._lock:
            return crate_name in self._observers

    def get_watched(self) -> List[str]:
        """Return names of the crates currently watched."""
        with self._lock:
            return list(self._observers.keys())

    def __len__(self) -> int:
        """Return the number of active watchers."""
        with self._lock:
            return len(self._observers)
