"""Removal of crate build outputs and rsw status files."""

import logging
import shutil
from pathlib import Path
from typing import List

from .config import RswConfig
from .notify import RSW_DIR


logger = logging.getLogger(__name__)


def clean(config: RswConfig) -> List[Path]:
    """
    Remove every crate's output directory and the .rsw directory.

    Args:
        config: Project configuration

    Returns:
        Directories that were removed
    """
    dirs_to_remove = [Path(crate.out_path(config.base_dir)) for crate in config.crates]
    dirs_to_remove.append(Path(config.base_dir or ".") / RSW_DIR)

    removed = []
    for d in dirs_to_remove:
        if d.is_dir():
            logger.info(f"Removing {d}")
            shutil.rmtree(d)
            removed.append(d)

    if not removed:
        logger.info("Nothing to clean")
    return removed
