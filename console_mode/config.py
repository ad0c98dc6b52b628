from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .display.capabilities import CapabilityOverrides
from .display.catalog import parse_resolution

# Option keys accepted in the YAML config file, with their value types.
FILE_KEYS: Dict[str, type] = {
    "display": str,
    "resolution": str,
    "refresh_rate": int,
    "force_vrr": bool,
    "force_hdr": bool,
    "no_vrr": bool,
    "no_hdr": bool,
    "safe_mode": bool,
    "gamescope_bin": str,
    "steam_bin": str,
    "steam_args": list,
    "launcher": str,
    "tui_launcher": bool,
    "extra_args": list,
}


def _positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {text}")
    return value


def _resolution(text: str) -> str:
    try:
        parse_resolution(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))
    return text.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="console-mode",
        description="Console Mode - a gamescope session launcher with automatic display detection",
    )
    parser.add_argument("-d", "--display", help='Override display selection (connector name, e.g. "card1-HDMI-A-1")')
    parser.add_argument("-r", "--resolution", type=_resolution, help='Override resolution (e.g. "1920x1080")')
    parser.add_argument("-f", "--refresh-rate", type=_positive_int, help="Override refresh rate in Hz")
    parser.add_argument("--force-vrr", action="store_true", default=None, help="Force enable VRR/Adaptive Sync")
    parser.add_argument("--force-hdr", action="store_true", default=None, help="Force enable HDR")
    parser.add_argument("--no-vrr", action="store_true", default=None, help="Disable VRR even if supported")
    parser.add_argument("--no-hdr", action="store_true", default=None, help="Disable HDR even if supported")
    parser.add_argument("--safe-mode", action="store_true", default=None, help="Use safe mode (disable advanced features)")
    parser.add_argument("--gamescope-bin", help="Custom gamescope binary path")
    parser.add_argument("--steam-bin", help="Custom steam binary path")
    parser.add_argument("--steam-args", nargs="+", help="Additional steam arguments")
    parser.add_argument("--launcher", help='Launcher command for display selection (e.g. "rofi -dmenu")')
    parser.add_argument("--tui-launcher", action="store_true", default=None,
                        help="Launch TUI monitor selector with controller support")
    parser.add_argument("--config", type=Path, help="Path to a YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("extra_args", nargs="*", help="Additional gamescope arguments (after --)")
    return parser


def default_config_path(environ: Mapping[str, str]) -> Path:
    if environ.get("CONSOLE_MODE_CONFIG"):
        return Path(environ["CONSOLE_MODE_CONFIG"])
    base = environ.get("XDG_CONFIG_HOME") or str(Path(environ.get("HOME", "~")).expanduser() / ".config")
    return Path(base) / "console-mode" / "config.yaml"


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read known option keys from a YAML file.

    A missing file yields {}; unreadable files and bad keys are logged and skipped.
    """
    log = logging.getLogger(__name__)
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        log.warning("Failed to load config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        log.warning("Ignoring config %s: top level is not a mapping", path)
        return {}

    values: Dict[str, Any] = {}
    for raw_key, value in data.items():
        key = str(raw_key).replace("-", "_")
        expected = FILE_KEYS.get(key)
        if expected is None:
            log.warning("Unknown key %r in %s", raw_key, path)
            continue
        if expected is int and isinstance(value, bool) or not isinstance(value, expected):
            log.warning("Ignoring %r in %s: expected %s", raw_key, path, expected.__name__)
            continue
        if expected is list:
            value = [str(v) for v in value]
        values[key] = value
    return values


class AppConfig:
    """Centralized runtime configuration.

    Option values come from the command line, then the YAML config file, then
    Sunshine client environment variables, then built-in defaults. Paths and
    timing may be overridden by environment variables to simplify testing.
    """

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
        verbose: bool = False,
    ) -> None:
        environ = os.environ if environ is None else environ
        opts = dict(options or {})
        self.verbose = verbose

        self.display: Optional[str] = opts.get("display")
        self.resolution: Optional[str] = opts.get("resolution")
        self.refresh_rate: Optional[int] = opts.get("refresh_rate")
        self.force_vrr = bool(opts.get("force_vrr", False))
        self.force_hdr = bool(opts.get("force_hdr", False))
        self.no_vrr = bool(opts.get("no_vrr", False))
        self.no_hdr = bool(opts.get("no_hdr", False))
        self.safe_mode = bool(opts.get("safe_mode", False))
        self.gamescope_bin: str = opts.get("gamescope_bin") or "gamescope"
        self.steam_bin: str = opts.get("steam_bin") or "steam"
        self.steam_args: List[str] = self._split_args(opts.get("steam_args"))
        self.launcher: Optional[str] = opts.get("launcher")
        self.tui_launcher = bool(opts.get("tui_launcher", False))
        self.extra_args: List[str] = list(opts.get("extra_args") or [])

        self.apply_sunshine_fallbacks(environ)

        # System paths
        self.drm_root = Path(environ.get("CONSOLE_MODE_DRM_ROOT", "/sys/class/drm"))
        self.input_dir = environ.get("CONSOLE_MODE_INPUT_DIR", "/dev/input")
        self.edid_decode_bin = environ.get("CONSOLE_MODE_EDID_DECODE", "edid-decode")
        # The TUI owns the terminal, so diagnostics go to a file
        self.log_file = Path(environ.get("CONSOLE_MODE_LOG", "/tmp/console-mode-debug.log"))

        # Timing/behavior
        self.pause_seconds = float(environ.get("CONSOLE_MODE_PAUSE", "1.0"))
        self.poll_timeout = 0.05
        self.controller_retry_backoff = 0.1

    @classmethod
    def from_args(cls, argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        environ = os.environ if environ is None else environ
        ns = build_parser().parse_args(argv)

        config_path = ns.config or default_config_path(environ)
        options = load_config_file(config_path)
        for key in FILE_KEYS:
            value = getattr(ns, key, None)
            if value is None or (key == "extra_args" and not value):
                continue
            options[key] = value
        return cls(options, environ, verbose=ns.verbose)

    @staticmethod
    def _split_args(value: Any) -> List[str]:
        if not value:
            return []
        if isinstance(value, str):
            return value.split()
        args: List[str] = []
        for item in value:
            args.extend(str(item).split())
        return args

    def apply_sunshine_fallbacks(self, environ: Mapping[str, str]) -> None:
        """Fill resolution/refresh rate from Sunshine client variables if unset."""
        log = logging.getLogger(__name__)
        if self.resolution is None:
            width = environ.get("SUNSHINE_CLIENT_WIDTH")
            height = environ.get("SUNSHINE_CLIENT_HEIGHT")
            if width and height:
                candidate = f"{width}x{height}"
                try:
                    parse_resolution(candidate)
                except ValueError:
                    log.warning("Ignoring invalid Sunshine client resolution %r", candidate)
                else:
                    log.info("Using Sunshine client resolution: %s", candidate)
                    self.resolution = candidate

        if self.refresh_rate is None:
            fps = environ.get("SUNSHINE_CLIENT_FPS")
            if fps:
                try:
                    rate = int(fps)
                except ValueError:
                    rate = 0
                if rate > 0:
                    log.info("Using Sunshine client FPS as refresh rate: %dHz", rate)
                    self.refresh_rate = rate

    def overrides(self) -> CapabilityOverrides:
        return CapabilityOverrides(
            force_vrr=self.force_vrr,
            no_vrr=self.no_vrr,
            force_hdr=self.force_hdr,
            no_hdr=self.no_hdr,
            refresh_rate=self.refresh_rate,
        )
