"""Status artifacts under .rsw/ for editors and dev servers to pick up."""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from .config import CrateConfig, RswConfig
from .models import BuildOutcome


logger = logging.getLogger(__name__)

RSW_DIR = ".rsw"
CRATES_FILE = "rsw.crates"
INFO_FILE = "rsw.info"
ERR_FILE = "rsw.err"

# Called with the rebuilt crate and the path whose change triggered it.
NotifyHook = Callable[[CrateConfig, Path], None]


def status_dir(base_dir: Optional[Path] = None) -> Path:
    """Return the .rsw directory, creating it if needed."""
    path = Path(base_dir or ".") / RSW_DIR
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_crates_manifest(config: RswConfig) -> Path:
    """
    Write `.rsw/rsw.crates`, one `name :~> output path` line per crate.

    Returns:
        Path of the written file
    """
    lines = [
        f"{crate.name} :~> {crate.out_path(config.base_dir)}"
        for crate in config.crates
    ]
    path = status_dir(config.base_dir) / CRATES_FILE
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


class StatusFileNotifier:
    """
    Notification hook that records the last watch result in .rsw/.

    A successful rebuild writes rsw.info and empties rsw.err; a failed
    one writes rsw.err and leaves rsw.info untouched.
    """

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = base_dir
        self._lock = threading.Lock()

    def __call__(self, crate: CrateConfig, path: Path) -> None:
        content = (
            "[RSW::OK]\n"
            f"[RSW::NAME] :~> {crate.name}\n"
            f"[RSW::PATH] :~> {path}"
        )
        with self._lock:
            directory = status_dir(self.base_dir)
            (directory / INFO_FILE).write_text(content, encoding="utf-8")
            (directory / ERR_FILE).write_text("", encoding="utf-8")

    def failed(self, crate: CrateConfig, path: Path, outcome: BuildOutcome) -> None:
        content = (
            "[RSW::ERR]\n"
            f"[RSW::NAME] :~> {crate.name}\n"
            f"[RSW::PATH] :~> {path}\n"
            f"[RSW::STATUS] :~> {outcome.exit_status}"
        )
        with self._lock:
            (status_dir(self.base_dir) / ERR_FILE).write_text(content, encoding="utf-8")
