"""Batched package-manager linking of crate build outputs."""

import logging
from typing import Optional, Sequence

from . import runner as _runner
from .config import LINK_CAPABLE_CLIS


logger = logging.getLogger(__name__)


def link_all(
    package_manager: Optional[str],
    paths: Sequence[str],
    run: Optional[_runner.Runner] = None,
) -> Optional[int]:
    """
    Link all crate outputs with a single package-manager invocation.

    Runs `<package_manager> link <path> <path> ...` once for every path,
    never once per crate.

    Args:
        package_manager: Package manager id, e.g. "npm"
        paths: Output directories to link
        run: Process runner (defaults to rsw.runner.run)

    Returns:
        Exit status of the link command, or None if nothing was linked
    """
    if package_manager not in LINK_CAPABLE_CLIS:
        logger.debug(f"Package manager {package_manager!r} does not support linking")
        return None
    if not paths:
        return None

    run = run or _runner.run
    status = run(package_manager, ["link", *paths])
    if status == 0:
        logger.info(f"Linked {len(paths)} crate(s) with {package_manager}")
    else:
        logger.warning(f"{package_manager} link exited with status {status}")
    return status
