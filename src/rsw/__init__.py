"""
rsw

Build orchestration for multi-crate wasm-pack projects.

Features:
- Crate selection per mode (build / watch) from rsw.toml
- Sequential wasm-pack builds with per-crate failure isolation
- Batched `npm link` of crate outputs
- Watch mode with per-crate debouncing and single-flight rebuilds
- Status files under .rsw/ for editor and dev-server integration
"""

from .models import (
    BuildMode,
    BuildOutcome,
    BuildSummary,
    ChangeEvent,
    RebuildTrigger,
)

from .config import (
    CrateConfig,
    CrateModeConfig,
    RswConfig,
    WatchSettings,
)

from .exceptions import (
    RswError,
    ConfigError,
    CrateRootNotFoundError,
    WatchAlreadyRunningError,
)

from .registry import LinkRegistry
from .linker import link_all
from .dispatcher import BuildDispatcher, dispatch
from .debounce import CrateDebouncer, RebuildScheduler
from .fs_watcher import FSWatcherPool, CrateEventHandler
from .notify import StatusFileNotifier, write_crates_manifest
from .clean import clean
from .watch import WatchEngine, run_watch


__all__ = [
    # Models
    "BuildMode",
    "BuildOutcome",
    "BuildSummary",
    "ChangeEvent",
    "RebuildTrigger",
    # Config
    "CrateConfig",
    "CrateModeConfig",
    "RswConfig",
    "WatchSettings",
    # Exceptions
    "RswError",
    "ConfigError",
    "CrateRootNotFoundError",
    "WatchAlreadyRunningError",
    # Components
    "LinkRegistry",
    "link_all",
    "BuildDispatcher",
    "dispatch",
    "CrateDebouncer",
    "RebuildScheduler",
    "FSWatcherPool",
    "CrateEventHandler",
    "StatusFileNotifier",
    "write_crates_manifest",
    "clean",
    # Watch
    "WatchEngine",
    "run_watch",
]

__version__ = "0.1.0"
