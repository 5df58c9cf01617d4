"""Shared fixtures for rsw tests."""

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from rsw.config import CrateConfig, CrateModeConfig, RswConfig
from rsw.runner import BUILD_TOOL


@dataclass
class Call:
    program: str
    args: List[str]
    cwd: Optional[str]
    timeout: Optional[float]

    @property
    def crate(self) -> Optional[str]:
        return Path(self.cwd).name if self.cwd else None


class FakeRunner:
    """Records invocations instead of spawning processes."""

    def __init__(self, statuses: Optional[Dict[str, int]] = None):
        self.statuses = statuses or {}
        self.calls: List[Call] = []
        self._gates: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def hold(self, crate: str) -> threading.Event:
        """Block builds of a crate until the returned event is set."""
        gate = threading.Event()
        self._gates[crate] = gate
        return gate

    def __call__(self, program, args, cwd=None, timeout=None):
        call = Call(program, list(args), str(cwd) if cwd is not None else None, timeout)
        with self._lock:
            self.calls.append(call)

        gate = self._gates.get(call.crate)
        if program == BUILD_TOOL and gate is not None:
            gate.wait(timeout=5.0)

        if program == BUILD_TOOL:
            return self.statuses.get(call.crate, 0)
        return 0

    def builds(self, crate: Optional[str] = None) -> List[Call]:
        with self._lock:
            return [
                c for c in self.calls
                if c.program == BUILD_TOOL and (crate is None or c.crate == crate)
            ]

    def links(self) -> List[Call]:
        with self._lock:
            return [c for c in self.calls if c.args[:1] == ["link"]]


def wait_for(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_crate(name: str, build: bool = True, watch: bool = True, link: bool = False, **kwargs) -> CrateConfig:
    return CrateConfig(
        name=name,
        root=kwargs.pop("root", "crates"),
        build=CrateModeConfig(run=build),
        watch=CrateModeConfig(run=watch, profile="dev"),
        link=link,
        **kwargs,
    )


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def project(tmp_path):
    """A project directory with crates x and y on disk."""
    for name in ("x", "y"):
        (tmp_path / "crates" / name / "src").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def watch_config(project):
    return RswConfig(
        crates=(make_crate("x", link=True), make_crate("y")),
        cli="npm",
        base_dir=project,
    )
