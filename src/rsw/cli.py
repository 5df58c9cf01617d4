"""
Command line interface for rsw.

Usage:
    rsw build                    # build crates with build.run = true
    rsw watch                    # build, then rebuild crates on change
    rsw clean                    # remove crate outputs and .rsw/
    rsw --config path/to/rsw.toml build
"""

import argparse
import logging
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .clean import clean
from .config import RswConfig, WatchSettings
from .dispatcher import dispatch
from .exceptions import ConfigError
from .models import BuildMode
from .notify import StatusFileNotifier, write_crates_manifest
from .watch import WatchEngine


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("rsw")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def load_config(args) -> RswConfig:
    """Load rsw.toml, exiting with status 1 if it is unusable."""
    try:
        return RswConfig.load(Path(args.config) if args.config else None)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)


def cmd_build(args):
    """Build every crate with build.run = true."""
    config = load_config(args)
    write_crates_manifest(config)

    summary = dispatch(config, BuildMode.BUILD)
    if summary.no_crates:
        sys.exit(1)

    logger.info(f"Built {len(summary) - len(summary.failed)}/{len(summary)} crate(s)")


def cmd_watch(args):
    """Build every crate with watch.run = true and rebuild on change."""
    config = load_config(args)
    write_crates_manifest(config)

    settings = WatchSettings.from_config(config)
    if args.debounce is not None:
        settings.debounce_ms = args.debounce

    notifier = StatusFileNotifier(config.base_dir)
    shutdown = GracefulShutdown()

    engine = WatchEngine(
        config,
        notify_hook=notifier,
        on_failure=notifier.failed,
        settings=settings,
    )
    summary = engine.start_async()
    if summary.no_crates:
        sys.exit(1)

    logger.info(f"Watching {len(engine.get_watched())} crate(s), press Ctrl+C to stop")
    try:
        while not shutdown.should_exit:
            time.sleep(0.5)
    finally:
        engine.stop()

    logger.info("Watch stopped")


def cmd_clean(args):
    """Remove crate build outputs and the .rsw directory."""
    config = load_config(args)
    removed = clean(config)
    logger.info(f"Removed {len(removed)} director{'y' if len(removed) == 1 else 'ies'}")


def main(argv: Optional[List[str]] = None):
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="rsw",
        description="Build and watch wasm-pack crates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Build for production
  rsw build

  # Rebuild on change during development
  rsw watch --debounce 200
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-c", "--config", default=None, help="Path to rsw.toml (default: ./rsw.toml)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="Build crates, useful for shipping to production")
    build_parser.set_defaults(func=cmd_build)

    watch_parser = subparsers.add_parser("watch", help="Rebuild crates on change, useful for development")
    watch_parser.add_argument("--debounce", type=int, default=None, help="Debounce time in ms (default: interval from rsw.toml)")
    watch_parser.set_defaults(func=cmd_watch)

    clean_parser = subparsers.add_parser("clean", help="Remove crate outputs and .rsw/")
    clean_parser.set_defaults(func=cmd_clean)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.func(args)


if __name__ == "__main__":
    main()
