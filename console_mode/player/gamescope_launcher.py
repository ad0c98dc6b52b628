"""gamescope session launcher with a single safe-mode retry."""
from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from typing import Callable, List, Mapping, MutableMapping, Optional, TextIO

from rich.console import Console

from ..config import AppConfig
from ..display.capabilities import Capabilities
from ..display.catalog import Output, parse_resolution

FALLBACK_WIDTH = 1920
FALLBACK_HEIGHT = 1080
FALLBACK_REFRESH = 60
SAFE_RETRY_REFRESH = 120


class LaunchError(RuntimeError):
    pass


def is_running_nested(environ: Optional[Mapping[str, str]] = None) -> bool:
    """True inside an existing Wayland or X11 session."""
    environ = os.environ if environ is None else environ
    return "WAYLAND_DISPLAY" in environ or "DISPLAY" in environ


def setup_environment(environ: Optional[MutableMapping[str, str]] = None) -> None:
    environ = os.environ if environ is None else environ
    environ["STEAM_FORCE_DESKTOPUI_SCALING"] = "1"
    environ["XDG_SESSION_TYPE"] = "wayland"
    environ["LIBSEAT_BACKEND"] = "logind"
    if "XDG_RUNTIME_DIR" not in environ:
        environ["XDG_RUNTIME_DIR"] = f"/run/user/{os.getuid()}"


def output_short_name(output: Output) -> str:
    """Connector name without the ``cardN-`` prefix, as gamescope expects."""
    _, sep, tail = output.name.partition("-")
    return tail if sep else output.name


class GamescopeLauncher:
    """Builds gamescope command lines and runs them."""

    def __init__(
        self,
        config: AppConfig,
        console: Console,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        stdin: Optional[TextIO] = None,
    ) -> None:
        self.config = config
        self.console = console
        self._run = runner
        self._stdin = stdin
        self._log = logging.getLogger("gamescope")

    def build_args(self, output: Output, caps: Capabilities) -> List[str]:
        args = [
            "-W", str(output.width),
            "-H", str(output.height),
            "-r", str(caps.max_refresh_rate),
            "--prefer-output", output_short_name(output),
        ]
        if caps.vrr:
            args.append("--adaptive-sync")
        if caps.hdr:
            args.extend(["--hdr-enabled", "--hdr-itm-enable"])
        args.append("--mangoapp")
        # Fullscreen and expose the Wayland socket
        args.extend(["-f", "-e"])
        args.extend(self.config.extra_args)
        return args

    def build_safe_args(self, output: Output) -> List[str]:
        return [
            "-W", str(output.width),
            "-H", str(output.height),
            "-r", str(SAFE_RETRY_REFRESH),
            "-f", "-e",
        ]

    def build_nested_args(self) -> List[str]:
        if self.config.resolution:
            width, height = parse_resolution(self.config.resolution)
        else:
            width, height = FALLBACK_WIDTH, FALLBACK_HEIGHT
        rate = self.config.refresh_rate or FALLBACK_REFRESH
        args = [
            "-W", str(width),
            "-H", str(height),
            "-r", str(rate),
            "--nested-width", str(width),
            "--nested-height", str(height),
            "--nested-refresh", str(rate),
            "-e",
            "--mangoapp",
        ]
        args.extend(self.config.extra_args)
        return args

    def command(self, gamescope_args: List[str]) -> List[str]:
        return (
            [self.config.gamescope_bin]
            + gamescope_args
            + ["--", self.config.steam_bin, "-bigpicture"]
            + self.config.steam_args
        )

    def _execute(self, gamescope_args: List[str], what: str) -> int:
        cmd = self.command(gamescope_args)
        self._log.info("Executing: %s", " ".join(cmd))
        try:
            proc = self._run(cmd, check=False)
        except OSError as exc:
            raise LaunchError(f"Failed to launch gamescope{what}: {exc}") from exc
        self._log.info("gamescope%s exited with %d", what, proc.returncode)
        return proc.returncode

    def _pause(self, factor: float = 1.0) -> None:
        if self.config.pause_seconds > 0:
            time.sleep(self.config.pause_seconds * factor)

    def launch(self, output: Output, caps: Capabilities) -> int:
        """Run the session; on failure, prompt once and retry with safe args.

        Returns the exit status of the last gamescope run.
        """
        args = self.build_args(output, caps)
        self.console.print(f"Launching gamescope with: {' '.join(args)}\n", markup=False)
        self._pause()

        status = self._execute(args, "")
        if status == 0:
            return 0

        self.console.print("\n[red]======================================[/red]")
        self.console.print("[red bold]Gamescope failed to start![/red bold]")
        self.console.print("[red]======================================[/red]\n")
        self.console.print("Press Enter to retry with safe options, or Ctrl+C to exit: ", end="")
        (self._stdin or sys.stdin).readline()

        self.console.print("\nRetrying with safe options...")
        self._pause(2)
        return self._execute(self.build_safe_args(output), " in safe mode")

    def launch_fallback(self) -> int:
        """Launch at 1920x1080@60 when no connected display was found."""
        args = [
            "-W", str(FALLBACK_WIDTH),
            "-H", str(FALLBACK_HEIGHT),
            "-r", str(FALLBACK_REFRESH),
            "-f", "-e",
        ]
        return self._execute(args, " in fallback mode")

    def launch_nested(self) -> int:
        args = self.build_nested_args()
        self.console.print(f"Launching gamescope in nested mode with: {' '.join(args)}\n", markup=False)
        self._pause()
        status = self._execute(args, " in nested mode")
        if status != 0:
            raise LaunchError(f"Gamescope exited with non-zero status {status}")
        return status
