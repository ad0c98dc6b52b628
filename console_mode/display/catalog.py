"""Enumeration of connected DRM outputs from sysfs."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Tuple

DEFAULT_DRM_ROOT = Path("/sys/class/drm")


class DisplayCatalogError(RuntimeError):
    """The DRM device tree itself could not be read."""


@dataclass(frozen=True)
class Output:
    """A connected physical connector and its preferred mode."""

    name: str  # e.g. "card1-HDMI-A-1"
    path: Path  # sysfs node of the connector
    width: int
    height: int

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    def with_resolution(self, width: int, height: int) -> "Output":
        return replace(self, width=width, height=height)


def parse_resolution(text: str) -> Tuple[int, int]:
    """Parse 'WIDTHxHEIGHT' into a tuple of ints.

    Raises:
        ValueError: if the text is not two positive integers joined by 'x'.
    """
    parts = text.strip().split("x")
    if len(parts) != 2:
        raise ValueError(f"Invalid resolution format: {text!r}")
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValueError(f"Invalid resolution format: {text!r}") from None
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid resolution format: {text!r}")
    return width, height


def detect_outputs(root: Path = DEFAULT_DRM_ROOT) -> List[Output]:
    """Return every connected connector that advertises at least one mode.

    Order follows the directory enumeration of ``root``. The first line of a
    connector's ``modes`` file is taken as its native resolution.

    Raises:
        DisplayCatalogError: if ``root`` cannot be listed.
    """
    log = logging.getLogger(__name__)
    root = Path(root)
    try:
        entries = list(root.iterdir())
    except OSError as exc:
        raise DisplayCatalogError(f"Cannot read DRM device tree {root}: {exc}") from exc

    outputs: List[Output] = []
    for path in entries:
        name = path.name
        if not name.startswith("card") or "-" not in name:
            continue
        status_file = path / "status"
        if not status_file.exists():
            continue
        try:
            status = status_file.read_text().strip()
            if status != "connected":
                continue
            modes_file = path / "modes"
            if not modes_file.exists():
                continue
            modes = modes_file.read_text().splitlines()
            if not modes:
                continue
            width, height = parse_resolution(modes[0])
        except (OSError, ValueError) as exc:
            log.warning("Skipping connector %s: %s", name, exc)
            continue
        outputs.append(Output(name=name, path=path, width=width, height=height))
        log.info("Found connected display %s at %dx%d", name, width, height)

    return outputs
