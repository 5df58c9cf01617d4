"""Build dispatcher: selects actionable crates and runs wasm-pack on each."""

import logging
import time
from typing import Optional

from . import runner as _runner
from .config import CrateConfig, RswConfig
from .linker import link_all
from .models import BuildMode, BuildOutcome, BuildSummary
from .registry import LinkRegistry


logger = logging.getLogger(__name__)


class BuildDispatcher:
    """
    Runs the external build tool for the crates of one configuration.

    A dispatch pass walks the crate list in order, builds every crate
    that is actionable for the mode, and fills the link registry with
    the outputs of crates that request linking. The single-crate path
    (build_crate) is shared with the watch engine.
    """

    def __init__(
        self,
        config: RswConfig,
        run: Optional[_runner.Runner] = None,
        registry: Optional[LinkRegistry] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            config: Validated project configuration
            run: Process runner (defaults to rsw.runner.run)
            registry: Link registry to populate
        """
        self.config = config
        self.run = run or _runner.run
        self.registry = registry if registry is not None else LinkRegistry()

    def build_crate(self, crate: CrateConfig, mode: BuildMode) -> BuildOutcome:
        """
        Build one crate synchronously.

        Failures are reported through the outcome, never raised.

        Args:
            crate: Crate to build
            mode: Mode whose profile applies

        Returns:
            The build outcome
        """
        crate_dir = crate.crate_dir(self.config.base_dir)
        logger.info(f"[{mode.value}] {crate.name} -> {crate_dir}")

        start = time.monotonic()
        status = self.run(
            _runner.BUILD_TOOL,
            _runner.build_args(crate, mode),
            cwd=crate_dir,
            timeout=self.config.build_timeout,
        )
        outcome = BuildOutcome(
            crate_name=crate.name,
            mode=mode,
            exit_status=status,
            duration=time.monotonic() - start,
        )

        if outcome.success:
            logger.info(f"[{mode.value}] {crate.name} built in {outcome.duration:.2f}s")
        else:
            logger.error(f"[{mode.value}] {crate.name} failed (exit status {status})")
        return outcome

    def register_link(self, crate: CrateConfig) -> bool:
        """
        Add a crate's output to the link registry if it should be linked.

        Returns:
            True if the crate was registered
        """
        if not (crate.link and self.config.supports_link):
            return False
        self.registry.register(crate.name, crate.out_path(self.config.base_dir))
        return True

    def dispatch(self, mode: BuildMode, link: bool = True) -> BuildSummary:
        """
        Build every crate actionable for the mode, in configuration order.

        A failing crate does not stop the remaining ones. When linking is
        enabled and the registry ends up non-empty, the link executor runs
        once for the whole pass.

        Args:
            mode: BUILD or WATCH (the initial pass of watch mode)
            link: Whether to run the link executor at the end of the pass

        Returns:
            Summary of the pass; no_crates is set if nothing was actionable
        """
        summary = BuildSummary(mode=mode)
        self.registry.clear()

        crates = self.config.actionable(mode)
        if not crates:
            logger.error(f"No crates selected for `rsw {mode.value}`, check `{mode.value}.run` in rsw.toml")
            summary.no_crates = True
            return summary

        for crate in crates:
            self.register_link(crate)
            summary.outcomes.append(self.build_crate(crate, mode))

        summary.linked = self.registry.snapshot()
        if summary.failed:
            logger.warning(f"{len(summary.failed)} of {len(summary)} crate(s) failed: {', '.join(summary.failed)}")

        if link and summary.linked:
            self.link()
        return summary

    def link(self) -> Optional[int]:
        """Link every registered output with one package-manager call."""
        return link_all(self.config.cli, self.registry.paths(), run=self.run)


def dispatch(
    config: RswConfig,
    mode: BuildMode,
    run: Optional[_runner.Runner] = None,
    link: bool = True,
) -> BuildSummary:
    """Run one dispatch pass over config with a fresh registry."""
    return BuildDispatcher(config, run=run).dispatch(mode, link=link)
