"""External process execution for build and link commands."""

import logging
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from .config import CrateConfig
from .models import BuildMode


logger = logging.getLogger(__name__)

BUILD_TOOL = "wasm-pack"

# Signature shared by run() and the fakes used in tests.
Runner = Callable[..., Optional[int]]


def run(
    program: str,
    args: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
) -> Optional[int]:
    """
    Run an external program with stdio inherited from this process.

    Output streams to the terminal as the program produces it.

    Args:
        program: Executable name or path
        args: Arguments passed to the program
        cwd: Working directory for the program
        timeout: Seconds to wait before killing the program

    Returns:
        The exit status, or None if the program could not be started
        or was killed after the timeout
    """
    cmd = [program, *args]
    if cwd is not None and not Path(cwd).is_dir():
        logger.error(f"Working directory does not exist or is not a directory: {cwd}")
        return None

    logger.info(f"$ {' '.join(cmd)}")
    try:
        return subprocess.run(cmd, cwd=cwd, timeout=timeout).returncode
    except FileNotFoundError:
        logger.error(f"Command not found: {program} (cwd: {cwd or '.'})")
        return None
    except OSError as e:
        logger.error(f"Cannot run {program} in {cwd or '.'}: {e}")
        return None
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        return None


def build_args(crate: CrateConfig, mode: BuildMode) -> List[str]:
    """
    Build the wasm-pack argument list for a crate.

    Args:
        crate: Crate to build
        mode: Mode whose profile applies

    Returns:
        Arguments for `wasm-pack`
    """
    profile = crate.mode_config(mode).profile
    args = [
        "build",
        "--target", crate.target,
        "--out-dir", crate.out_dir or "pkg",
        f"--{profile}",
    ]
    if crate.scope:
        args.extend(["--scope", crate.scope])
    return args
