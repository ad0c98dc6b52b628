from __future__ import annotations

import logging
import sys
import time
from typing import Optional, Sequence

from rich.console import Console
from rich.text import Text

from .config import AppConfig
from .display.capabilities import detect_capabilities
from .display.catalog import DisplayCatalogError, Output, detect_outputs, parse_resolution
from .logging_setup import setup_logging
from .player.gamescope_launcher import GamescopeLauncher, LaunchError, is_running_nested, setup_environment
from .ui.menu import SelectionError, find_output, select_display_launcher, select_display_menu
from .ui.selector import select_display_tui

NESTED_NOTES = """\
Note: You may see some warnings from gamescope/Mesa:
  - 'No CAP_SYS_NICE' - normal, doesn't affect gaming performance
  - 'libdecor warnings' - expected in nested mode
  - 'RADV not conformant' - safe to ignore, RADV works great for gaming
  - 'vk_khr_present_wait overridden' - informational only
"""


def choose_output(outputs: Sequence[Output], config: AppConfig, console: Console) -> Optional[Output]:
    """Resolve which output to use; None means the user backed out."""
    if config.display:
        return find_output(outputs, config.display)
    if len(outputs) == 1:
        only = outputs[0]
        console.print(f"Detected display: {only.name} at {only.resolution}")
        return only
    if config.launcher:
        return select_display_launcher(outputs, config.launcher)
    return select_display_menu(outputs, console)


def launch_session(config: AppConfig, console: Console) -> int:
    launcher = GamescopeLauncher(config, console)

    if config.tui_launcher:
        # The picker runs inside desktop sessions and with no outputs too
        outputs = detect_outputs(config.drm_root)
        if len(outputs) == 1:
            only = outputs[0]
            console.print(f"Single display detected: {only.name} at {only.resolution}")
            time.sleep(config.pause_seconds)
        return launch_on_output(select_display_tui(outputs, config, console), config, console, launcher)

    if is_running_nested():
        console.print("Detected nested environment (running inside another compositor)")
        console.print("Launching in nested Wayland mode...\n")
        console.print(NESTED_NOTES, markup=False)
        time.sleep(config.pause_seconds * 2)
        return launcher.launch_nested()

    outputs = detect_outputs(config.drm_root)
    if not outputs:
        console.print("[yellow]⚠ No connected displays detected, using fallback: 1920x1080[/yellow]")
        time.sleep(config.pause_seconds)
        return launcher.launch_fallback()

    return launch_on_output(choose_output(outputs, config, console), config, console, launcher)


def launch_on_output(
    selected: Optional[Output],
    config: AppConfig,
    console: Console,
    launcher: GamescopeLauncher,
) -> int:
    log = logging.getLogger(__name__)
    if selected is None:
        log.info("No display selected, exiting")
        return 0

    if config.resolution:
        width, height = parse_resolution(config.resolution)
        selected = selected.with_resolution(width, height)

    console.print(f"\nLaunching with display: {selected.name} at {selected.resolution}")
    console.print("\n[bold]=== Detecting Display Capabilities ===[/bold]\n")
    capabilities = detect_capabilities(selected, config, console)
    console.print()
    time.sleep(config.pause_seconds * 2)

    return launcher.launch(selected, capabilities)


def _report_error(console: Console, message: str) -> None:
    console.print(Text.assemble(("Error: ", "bold red"), message))


def run(argv: Optional[Sequence[str]] = None) -> int:
    config = AppConfig.from_args(argv)
    setup_logging(config, verbose=config.verbose)
    log = logging.getLogger(__name__)
    console = Console()

    setup_environment()
    try:
        return launch_session(config, console)
    except (DisplayCatalogError, SelectionError, LaunchError, ValueError) as exc:
        log.error("console-mode failed: %s", exc, exc_info=True)
        _report_error(console, str(exc))
        return 1
    except (OSError, EOFError) as exc:
        log.error("Terminal input failed: %s", exc, exc_info=True)
        _report_error(console, f"terminal input failed: {exc}")
        return 1


def main() -> None:
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
