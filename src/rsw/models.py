"""Data models for the rsw package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
import time


class BuildMode(Enum):
    """Modes a crate can be dispatched under."""
    BUILD = "build"
    WATCH = "watch"


@dataclass(frozen=True)
class BuildOutcome:
    """
    Result of one external build attempt for a single crate.

    Attributes:
        crate_name: Name of the crate that was built
        mode: Mode the build ran under
        exit_status: Exit status of the build tool (None if it never ran
            to completion, e.g. missing executable or timeout)
        duration: Wall-clock seconds spent in the build
    """
    crate_name: str
    mode: BuildMode
    exit_status: Optional[int]
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.exit_status == 0


@dataclass
class BuildSummary:
    """
    Result of one dispatch pass over the crate list.

    Attributes:
        mode: Mode the pass ran under
        outcomes: Build outcomes in configuration order
        linked: Snapshot of the link registry (crate name -> output path)
        no_crates: True if no crate was actionable for the mode
    """
    mode: BuildMode
    outcomes: List[BuildOutcome] = field(default_factory=list)
    linked: Dict[str, str] = field(default_factory=dict)
    no_crates: bool = False

    @property
    def built(self) -> List[str]:
        return [o.crate_name for o in self.outcomes]

    @property
    def failed(self) -> List[str]:
        return [o.crate_name for o in self.outcomes if not o.success]

    def __len__(self) -> int:
        return len(self.outcomes)


@dataclass
class ChangeEvent:
    """
    Raw change event from the filesystem watcher for one crate.

    Attributes:
        crate_name: Crate whose source tree the path belongs to
        path: Path that changed
        timestamp: Unix timestamp when the event occurred
    """
    crate_name: str
    path: Path
    timestamp: float = field(default_factory=time.time)


@dataclass
class RebuildTrigger:
    """A debounced request to rebuild one crate."""
    crate_name: str
    path: Path
    event_count: int = 1
    timestamp: float = field(default_factory=time.time)
