"""
Shared fixtures: fake sysfs DRM trees, quiet consoles and test configs.
"""
from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, List, Optional

import pytest
from rich.console import Console

from console_mode.config import AppConfig
from console_mode.display.catalog import Output


def make_connector(
    root: Path,
    name: str,
    status: str = "connected",
    modes: Optional[List[str]] = None,
    edid: Optional[bytes] = None,
) -> Path:
    path = root / name
    path.mkdir(parents=True)
    (path / "status").write_text(status + "\n")
    if modes is not None:
        (path / "modes").write_text("".join(m + "\n" for m in modes))
    if edid is not None:
        (path / "edid").write_bytes(edid)
    return path


@pytest.fixture
def drm_root(tmp_path: Path) -> Path:
    root = tmp_path / "drm"
    root.mkdir()
    return root


@pytest.fixture
def connector(drm_root: Path) -> Callable[..., Path]:
    def _make(name: str, **kwargs) -> Path:  # type: ignore[no-untyped-def]
        return make_connector(drm_root, name, **kwargs)
    return _make


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=100, height=24, color_system=None, force_terminal=False)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig({}, environ={"CONSOLE_MODE_PAUSE": "0", "CONSOLE_MODE_EDID_DECODE": "/nonexistent/edid-decode"})


@pytest.fixture
def outputs(tmp_path: Path) -> List[Output]:
    return [
        Output("card0-HDMI-A-1", tmp_path / "card0-HDMI-A-1", 1920, 1080),
        Output("card1-DP-2", tmp_path / "card1-DP-2", 2560, 1440),
        Output("card1-DP-3", tmp_path / "card1-DP-3", 3840, 2160),
    ]
