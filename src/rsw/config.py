"""Configuration for rsw projects and the watch engine."""

import fnmatch
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import ConfigError
from .models import BuildMode


logger = logging.getLogger(__name__)

CONFIG_FILE = "rsw.toml"

# Package managers whose `link` subcommand accepts several local paths.
LINK_CAPABLE_CLIS = frozenset({"npm"})

PROFILES = ("release", "dev", "profiling")


@dataclass(frozen=True)
class CrateModeConfig:
    """
    Per-mode settings of a crate (the `[crates.build]` / `[crates.watch]` tables).

    Attributes:
        run: Whether the crate takes part in this mode
        profile: wasm-pack profile (release, dev or profiling)
    """
    run: bool = True
    profile: str = "release"


@dataclass(frozen=True)
class CrateConfig:
    """
    One buildable unit from `[[crates]]`.

    Attributes:
        name: Unique crate name, also a path component under `root`
        root: Directory holding the crate
        out_dir: Output directory relative to `root/name`
        build: Settings for `rsw build`
        watch: Settings for `rsw watch`
        link: Whether the output is registered with the package manager
        target: wasm-pack `--target`
        scope: Optional npm scope passed to wasm-pack
    """
    name: str
    root: Optional[str] = "."
    out_dir: Optional[str] = "pkg"
    build: CrateModeConfig = field(default_factory=CrateModeConfig)
    watch: CrateModeConfig = field(default_factory=lambda: CrateModeConfig(profile="dev"))
    link: bool = False
    target: str = "web"
    scope: Optional[str] = None

    def mode_config(self, mode: BuildMode) -> CrateModeConfig:
        return self.build if mode == BuildMode.BUILD else self.watch

    def is_actionable(self, mode: BuildMode) -> bool:
        """Check if this crate is selected for the given mode."""
        return self.mode_config(mode).run

    def crate_dir(self, base_dir: Optional[Path] = None) -> str:
        """Return the lexically normalized crate source directory."""
        base = str(base_dir) if base_dir is not None else ""
        return os.path.normpath(os.path.join(base, self.root or ".", self.name))

    def out_path(self, base_dir: Optional[Path] = None) -> str:
        """Return the lexically normalized build output directory."""
        return os.path.normpath(os.path.join(self.crate_dir(base_dir), self.out_dir or ""))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrateConfig":
        """Create from a `[[crates]]` table."""
        if not isinstance(data, dict):
            raise ConfigError(f"crate entry must be a table: {data!r}")

        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ConfigError(f"crate entry is missing a name: {data!r}")

        return cls(
            name=name,
            root=_get(data, "root", "."),
            out_dir=_get(data, "out_dir", "pkg"),
            build=_mode_from_dict(name, data.get("build"), "release"),
            watch=_mode_from_dict(name, data.get("watch"), "dev"),
            link=bool(data.get("link", False)),
            target=data.get("target", "web"),
            scope=data.get("scope") or None,
        )


@dataclass(frozen=True)
class RswConfig:
    """
    Whole-project configuration, immutable for one invocation.

    Attributes:
        crates: Crates in configuration order
        cli: Package manager used for linking (None disables linking)
        interval: Watch debounce window in milliseconds
        build_timeout: Seconds before an external build is abandoned (None waits forever)
        link_on_initial_only: In watch mode, link only after the initial pass
        base_dir: Directory relative crate roots resolve against
    """
    crates: Tuple[CrateConfig, ...] = ()
    cli: Optional[str] = "npm"
    interval: int = 50
    build_timeout: Optional[float] = None
    link_on_initial_only: bool = True
    base_dir: Optional[Path] = None

    @property
    def supports_link(self) -> bool:
        return self.cli in LINK_CAPABLE_CLIS

    def actionable(self, mode: BuildMode) -> List[CrateConfig]:
        """Return the crates selected for the given mode, in order."""
        return [c for c in self.crates if c.is_actionable(mode)]

    def get_crate(self, name: str) -> Optional[CrateConfig]:
        for crate in self.crates:
            if crate.name == name:
                return crate
        return None

    def validate(self) -> "RswConfig":
        """
        Check invariants that must hold before any dispatch begins.

        Returns:
            self, for chaining

        Raises:
            ConfigError: On duplicate names or missing required fields
        """
        seen = set()
        for crate in self.crates:
            if crate.name in seen:
                raise ConfigError(f"duplicate crate name: {crate.name}")
            seen.add(crate.name)

            if not (crate.build.run or crate.watch.run):
                continue
            if not crate.root:
                raise ConfigError(f"crate '{crate.name}' is missing 'root'")
            if not crate.out_dir:
                raise ConfigError(f"crate '{crate.name}' is missing 'out-dir'")
            for mode in (crate.build, crate.watch):
                if mode.profile not in PROFILES:
                    raise ConfigError(
                        f"crate '{crate.name}' has unknown profile '{mode.profile}'"
                    )

        if self.interval < 0:
            raise ConfigError(f"interval must not be negative: {self.interval}")
        if self.build_timeout is not None and self.build_timeout <= 0:
            raise ConfigError(f"build-timeout must be positive: {self.build_timeout}")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "RswConfig":
        """Create from a parsed rsw.toml document."""
        crates = data.get("crates", [])
        if not isinstance(crates, list):
            raise ConfigError("'crates' must be an array of tables")

        timeout = _get(data, "build_timeout", None)
        return cls(
            crates=tuple(CrateConfig.from_dict(c) for c in crates),
            cli=data.get("cli", "npm") or None,
            interval=int(data.get("interval", 50)),
            build_timeout=float(timeout) if timeout is not None else None,
            link_on_initial_only=bool(_get(data, "link_on_initial_only", True)),
            base_dir=base_dir,
        )

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "RswConfig":
        """
        Load and validate rsw.toml.

        RSW_INTERVAL and RSW_BUILD_TIMEOUT in the environment override
        the values in the file.

        Args:
            path: Path to the config file (default: ./rsw.toml)

        Raises:
            ConfigError: If the file is missing, unparsable or invalid
        """
        path = Path(path or CONFIG_FILE).resolve()
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError:
            raise ConfigError(f"configuration file not found: {path}")
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"invalid {path.name}: {e}")

        if os.environ.get("RSW_INTERVAL"):
            data["interval"] = os.environ["RSW_INTERVAL"]
        if os.environ.get("RSW_BUILD_TIMEOUT"):
            data["build-timeout"] = os.environ["RSW_BUILD_TIMEOUT"]

        try:
            config = cls.from_dict(data, base_dir=path.parent)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid {path.name}: {e}")

        logger.debug(f"Loaded {len(config.crates)} crate(s) from {path}")
        return config.validate()


@dataclass
class WatchSettings:
    """
    Tuning options for the watch engine.

    Attributes:
        debounce_ms: Events for one crate within this window coalesce
        flush_interval_ms: How often pending events are flushed
        ignore_patterns: Glob patterns for paths that never trigger a rebuild
        recursive: Whether to watch crate directories recursively
        join_timeout: Seconds to wait for in-flight builds on shutdown
    """
    debounce_ms: int = 50
    flush_interval_ms: int = 20
    ignore_patterns: List[str] = field(default_factory=lambda: [
        "*.swp",
        "*.swo",
        "*~",
        ".git/*",
        ".git",
        "node_modules/*",
        "node_modules",
        ".DS_Store",
        "Thumbs.db",
    ])
    recursive: bool = True
    join_timeout: float = 5.0

    @classmethod
    def from_config(cls, config: RswConfig) -> "WatchSettings":
        return cls(debounce_ms=config.interval)

    def should_ignore(self, path: Path) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Args:
            path: Path to check

        Returns:
            True if the path should be ignored
        """
        path_str = str(path)
        name = path.name

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
            if fnmatch.fnmatch(path_str, f"*/{pattern}"):
                return True
            if fnmatch.fnmatch(path_str, pattern):
                return True

        return False


def _get(data: Dict[str, Any], key: str, default: Any) -> Any:
    """Look up a key in either snake_case or the kebab-case rsw.toml uses."""
    kebab = key.replace("_", "-")
    if kebab in data:
        return data[kebab]
    return data.get(key, default)


def _mode_from_dict(name: str, data: Optional[Dict[str, Any]], profile: str) -> CrateModeConfig:
    if data is None:
        return CrateModeConfig(profile=profile)
    if not isinstance(data, dict):
        raise ConfigError(f"crate '{name}': mode settings must be a table")
    return CrateModeConfig(
        run=bool(data.get("run", True)),
        profile=data.get("profile", profile),
    )
