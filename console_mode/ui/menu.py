"""Non-interactive display selection: numbered prompt and dmenu-style launchers."""
from __future__ import annotations

import logging
import shlex
import subprocess
import sys
from typing import Callable, Optional, Sequence, TextIO

from rich.console import Console

from ..display.catalog import Output


class SelectionError(RuntimeError):
    pass


class DisplayNotFoundError(SelectionError):
    pass


def find_output(outputs: Sequence[Output], name: str) -> Output:
    for output in outputs:
        if output.name == name:
            return output
    raise DisplayNotFoundError(f"Display '{name}' not found")


def select_display_menu(outputs: Sequence[Output], console: Console, stdin: Optional[TextIO] = None) -> Output:
    """Print a numbered list and read a 1-based choice from ``stdin``.

    An out-of-range number falls back to the first display.
    """
    stdin = stdin if stdin is not None else sys.stdin
    console.print("\n[bold]=== Gaming Display Selection ===[/bold]\n")
    for i, output in enumerate(outputs, start=1):
        console.print(f"  [{i}] {output.name} - {output.resolution}", markup=False)

    console.print(f"\nSelect display (1-{len(outputs)}): ", end="")
    line = stdin.readline()
    try:
        choice = int(line.strip())
    except ValueError:
        raise SelectionError(f"Invalid input: {line.strip()!r}") from None

    if choice < 1 or choice > len(outputs):
        first = outputs[0]
        console.print(f"Invalid choice, using first display: {first.name} at {first.resolution}")
        return first

    selected = outputs[choice - 1]
    console.print(f"Using {selected.name} at {selected.resolution}\n")
    return selected


def select_display_launcher(
    outputs: Sequence[Output],
    command: str,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> Output:
    """Let an external picker (dmenu, rofi -dmenu, wofi --dmenu) choose.

    Options are written one per line as ``<name> - <resolution>``; the picker
    prints the chosen line on stdout.
    """
    log = logging.getLogger(__name__)
    argv = shlex.split(command)
    if not argv:
        raise SelectionError("Launcher command is empty")

    options = "\n".join(f"{o.name} - {o.resolution}" for o in outputs)
    log.info("Running display launcher: %s", command)
    try:
        proc = runner(argv, input=options, stdout=subprocess.PIPE, text=True, check=False)
    except OSError as exc:
        raise SelectionError(f"Failed to spawn launcher: {command}: {exc}") from exc

    if proc.returncode != 0:
        raise SelectionError("Launcher exited with non-zero status (user may have cancelled)")

    selection = (proc.stdout or "").strip()
    if not selection:
        raise SelectionError("No display selected")

    name = selection.split(" - ", 1)[0]
    try:
        return find_output(outputs, name)
    except DisplayNotFoundError:
        raise SelectionError(f"Selected display '{name}' not found") from None
