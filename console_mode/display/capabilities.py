"""Display capability inference from edid-decode output.

edid-decode prints free-form diagnostic prose, so detection here is a
best-effort scan for known phrases. Missing an exotic phrasing is preferred
over trusting garbage, hence the refresh-rate ceiling.
"""
from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Optional, Sequence

from rich.console import Console

from .catalog import Output

if TYPE_CHECKING:
    from ..config import AppConfig

MIN_REFRESH_HZ = 60
MAX_REFRESH_HZ = 500
HIGH_RES_WIDTH = 2560
HIGH_RES_REFRESH_HZ = 144

VALID_BPC = (8, 10, 12)

_REFRESH_RE = re.compile(r"(\d+)\.?\d*\s*Hz")


@dataclass(frozen=True)
class Capabilities:
    vrr: bool
    hdr: bool
    max_refresh_rate: int
    max_bpc: int

    def __post_init__(self) -> None:
        if self.max_refresh_rate <= 0:
            raise ValueError(f"max_refresh_rate must be positive, got {self.max_refresh_rate}")
        if self.max_bpc not in VALID_BPC:
            raise ValueError(f"max_bpc must be one of {VALID_BPC}, got {self.max_bpc}")


SAFE_CAPABILITIES = Capabilities(vrr=False, hdr=False, max_refresh_rate=60, max_bpc=8)


@dataclass(frozen=True)
class CapabilityOverrides:
    """User directives applied on top of inferred capabilities.

    Precedence per field: explicit refresh rate > forced on > forced off > inferred.
    """

    force_vrr: bool = False
    no_vrr: bool = False
    force_hdr: bool = False
    no_hdr: bool = False
    refresh_rate: Optional[int] = None

    def apply(self, caps: Capabilities) -> Capabilities:
        vrr = caps.vrr
        if self.force_vrr:
            vrr = True
        elif self.no_vrr:
            vrr = False

        hdr = caps.hdr
        if self.force_hdr:
            hdr = True
        elif self.no_hdr:
            hdr = False

        rate = self.refresh_rate if self.refresh_rate is not None else caps.max_refresh_rate
        return replace(caps, vrr=vrr, hdr=hdr, max_refresh_rate=rate)


@dataclass(frozen=True)
class MarkerRule:
    """If ``marker`` occurs in the decoded text, set ``field`` to ``value``."""

    marker: str
    field: str
    value: object


# Evaluated top to bottom; the first match per field wins, so the 12-bit
# markers must stay ahead of the 10-bit ones.
EDID_RULES: Sequence[MarkerRule] = (
    MarkerRule("Variable Refresh Rate", "vrr", True),
    MarkerRule("FreeSync", "vrr", True),
    MarkerRule("G-SYNC Compatible", "vrr", True),
    MarkerRule("VESA VRR", "vrr", True),
    MarkerRule("Vendor-Specific Data Block (AMD)", "vrr", True),
    MarkerRule("HDR Static Metadata", "hdr", True),
    MarkerRule("HDR10", "hdr", True),
    MarkerRule("SMPTE ST 2084", "hdr", True),
    MarkerRule("12 bits per", "max_bpc", 12),
    MarkerRule("Bits per primary color channel: 12", "max_bpc", 12),
    MarkerRule("10 bits per", "max_bpc", 10),
    MarkerRule("Bits per primary color channel: 10", "max_bpc", 10),
)


def default_refresh_rate(output: Output) -> int:
    return HIGH_RES_REFRESH_HZ if output.width >= HIGH_RES_WIDTH else MIN_REFRESH_HZ


def default_capabilities(output: Output) -> Capabilities:
    """Capabilities guessed from geometry alone."""
    return Capabilities(vrr=False, hdr=False, max_refresh_rate=default_refresh_rate(output), max_bpc=8)


def match_rules(edid_text: str, rules: Sequence[MarkerRule] = EDID_RULES) -> Dict[str, object]:
    matched: Dict[str, object] = {}
    for rule in rules:
        if rule.field in matched:
            continue
        if rule.marker in edid_text:
            matched[rule.field] = rule.value
    return matched


def extract_max_refresh(edid_text: str) -> Optional[int]:
    """Highest ``<n> Hz`` reading in (60, 500], or None."""
    rates = [int(m) for m in _REFRESH_RE.findall(edid_text)]
    plausible = [r for r in rates if MIN_REFRESH_HZ < r <= MAX_REFRESH_HZ]
    return max(plausible) if plausible else None


def parse_edid_capabilities(edid_text: str, output: Output) -> Capabilities:
    matched = match_rules(edid_text)
    rate = extract_max_refresh(edid_text) or 0
    if rate < MIN_REFRESH_HZ:
        rate = default_refresh_rate(output)
    return Capabilities(
        vrr=bool(matched.get("vrr", False)),
        hdr=bool(matched.get("hdr", False)),
        max_refresh_rate=rate,
        max_bpc=int(matched.get("max_bpc", 8)),  # type: ignore[arg-type]
    )


def infer_capabilities(
    edid_text: Optional[str],
    output: Output,
    overrides: Optional[CapabilityOverrides] = None,
    safe_mode: bool = False,
) -> Capabilities:
    """Turn decoded EDID text plus output geometry into Capabilities.

    Safe mode short-circuits to SAFE_CAPABILITIES and ignores overrides.
    Empty or missing text falls back to the geometry defaults.
    """
    if safe_mode:
        return SAFE_CAPABILITIES
    if not edid_text or not edid_text.strip():
        caps = default_capabilities(output)
    else:
        caps = parse_edid_capabilities(edid_text, output)
    if overrides is not None:
        caps = overrides.apply(caps)
    return caps


def decode_edid(blob: bytes, binary: str = "edid-decode") -> Optional[str]:
    """Run the external decoder over ``blob``; None if it cannot be run.

    The exit status is ignored: edid-decode exits non-zero on conformance
    failures while still printing the decoded blocks.
    """
    log = logging.getLogger(__name__)
    try:
        proc = subprocess.run(
            [binary],
            input=blob,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError as exc:
        log.warning("Could not run %s: %s", binary, exc)
        return None
    if proc.returncode != 0:
        log.debug("%s exited with %d", binary, proc.returncode)
    return proc.stdout.decode("utf-8", errors="replace")


def read_edid(output: Output) -> Optional[bytes]:
    log = logging.getLogger(__name__)
    edid_file = output.path / "edid"
    if not edid_file.is_file():
        log.info("No EDID file for %s", output.name)
        return None
    try:
        return edid_file.read_bytes()
    except OSError as exc:
        log.warning("Failed to read EDID for %s: %s", output.name, exc)
        return None


def detect_capabilities(output: Output, config: "AppConfig", console: Console) -> Capabilities:
    """Read, decode and interpret the EDID of ``output`` and report the result."""
    log = logging.getLogger(__name__)
    if config.safe_mode:
        console.print("[yellow]⚠ Safe mode enabled - using conservative defaults[/yellow]")
        return SAFE_CAPABILITIES

    edid_text: Optional[str] = None
    blob = read_edid(output)
    if blob is None:
        console.print("[yellow]⚠ EDID file not accessible, using defaults[/yellow]")
    elif not blob:
        console.print("[yellow]⚠ EDID file is empty, using defaults[/yellow]")
    else:
        edid_text = decode_edid(blob, config.edid_decode_bin)
        if edid_text is None:
            console.print(f"[yellow]⚠ Could not run {config.edid_decode_bin}, using defaults[/yellow]")

    caps = infer_capabilities(edid_text, output, config.overrides())
    log.info("Capabilities for %s: %s", output.name, caps)
    print_capabilities(caps, console)
    return caps


def print_capabilities(caps: Capabilities, console: Console) -> None:
    if caps.vrr:
        console.print("[green]✓[/green] VRR/Adaptive Sync supported")
    else:
        console.print("[red]✗[/red] VRR/Adaptive Sync not detected")

    if caps.hdr:
        console.print("[green]✓[/green] HDR supported")
    else:
        console.print("[red]✗[/red] HDR not detected")

    if caps.max_bpc == 12:
        console.print("[green]✓[/green] 12-bit color depth supported")
    elif caps.max_bpc == 10:
        console.print("[green]✓[/green] 10-bit color depth supported")
    else:
        console.print("[green]✓[/green] 8-bit color depth (standard)")

    console.print(f"[green]✓[/green] Maximum refresh rate: {caps.max_refresh_rate}Hz")
