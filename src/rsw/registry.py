"""Thread-safe registry of crate outputs to expose via package linking."""

import threading
from typing import Dict, List, Optional


class LinkRegistry:
    """
    Thread-safe mapping of crate name to build output path.

    Populated by the build dispatcher during one pass and consumed
    once by the link executor at the end of that pass.
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._paths: Dict[str, str] = {}
        self._lock = threading.RLock()

    def register(self, name: str, path: str) -> bool:
        """
        Register a crate output path.

        Args:
            name: Crate name
            path: Normalized output path

        Returns:
            True if the crate was new, False if its path was replaced
        """
        with self._lock:
            is_new = name not in self._paths
            self._paths[name] = path
            return is_new

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._paths.pop(name, None) is not None

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            return self._paths.get(name)

    def paths(self) -> List[str]:
        """Return registered output paths in registration order."""
        with self._lock:
            return list(self._paths.values())

    def snapshot(self) -> Dict[str, str]:
        """Return a copy of the current mapping."""
        with self._lock:
            return dict(self._paths)

    def clear(self) -> int:
        """
        Remove all entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            count = len(self._paths)
            self._paths.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._paths
