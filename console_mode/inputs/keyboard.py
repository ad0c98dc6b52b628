from __future__ import annotations

import logging
import os
import select
import sys
import termios
import tty
from typing import Optional, Tuple

from rich.console import Console

from .abstraction import InputProvider, NavigationEvent

ESC = "\x1b"

# Escape sequences for the arrow keys in both normal (CSI) and
# application cursor (SS3) modes.
_SEQUENCES = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
}


def decode_key(buffer: str) -> Tuple[Optional[str], str]:
    """Split the first key off ``buffer``.

    Returns ``(key, rest)`` where key is a symbolic name ("up", "down",
    "enter", "space", "escape", ...) or the literal character.
    """
    if not buffer:
        return None, ""
    if buffer[0] == ESC:
        for seq, name in _SEQUENCES.items():
            if buffer.startswith(seq):
                return name, buffer[len(seq):]
        if len(buffer) > 1 and buffer[1] in "[O":
            # Unknown CSI/SS3 sequence: swallow up to its final byte
            for i in range(2, len(buffer)):
                if "@" <= buffer[i] <= "~":
                    return "unknown", buffer[i + 1:]
            return "unknown", ""
        return "escape", buffer[1:]
    ch = buffer[0]
    if ch in ("\r", "\n"):
        return "enter", buffer[1:]
    if ch == " ":
        return "space", buffer[1:]
    return ch, buffer[1:]


class KeyboardInputProvider(InputProvider):
    def translate(self, raw_event) -> Optional[NavigationEvent]:  # type: ignore[no-untyped-def]
        key = raw_event
        if key in ("up", "k"):
            return NavigationEvent.MOVE_UP
        if key in ("down", "j"):
            return NavigationEvent.MOVE_DOWN
        if key in ("enter", "space"):
            return NavigationEvent.CONFIRM
        if key in ("escape", "q"):
            return NavigationEvent.CANCEL
        return None


class TerminalKeyboard:
    """Polls a terminal stream for at most one key press per call.

    Read errors are not caught: the keyboard is the input of last resort.
    """

    def __init__(self, stream=None) -> None:  # type: ignore[no-untyped-def]
        self.stream = stream if stream is not None else sys.stdin
        self.provider = KeyboardInputProvider()
        self._pending = ""
        self._log = logging.getLogger("keyboard")

    def poll(self, timeout: float) -> Optional[NavigationEvent]:
        if not self._pending:
            fd = self.stream.fileno()
            ready, _, _ = select.select([fd], [], [], timeout)
            if not ready:
                return None
            data = os.read(fd, 64)
            if not data:
                raise EOFError("keyboard stream closed")
            self._pending = data.decode("utf-8", errors="replace")

        key, self._pending = decode_key(self._pending)
        if key is None:
            return None
        event = self.provider.translate(key)
        self._log.debug("Key %r -> %s", key, event.name if event else None)
        return event


class TerminalSession:
    """Scoped cbreak input plus alternate screen.

    Entering saves the termios attributes, switches to cbreak mode (no echo,
    no line buffering, signals still delivered), enters the alternate screen
    and hides the cursor. Exiting restores all of it exactly once.
    """

    def __init__(self, console: Console, stream=None) -> None:  # type: ignore[no-untyped-def]
        self.console = console
        self.stream = stream if stream is not None else sys.stdin
        self._saved = None
        self.active = False

    def __enter__(self) -> "TerminalSession":
        fd = self.stream.fileno()
        try:
            self._saved = termios.tcgetattr(fd)
        except termios.error as exc:
            # Not a terminal (piped stdin, service launch)
            raise OSError(*exc.args) from exc
        self.active = True
        try:
            tty.setcbreak(fd)
            self.console.set_alt_screen(True)
            self.console.show_cursor(False)
        except termios.error as exc:
            self.restore()
            raise OSError(*exc.args) from exc
        except BaseException:
            self.restore()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.restore()

    def restore(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            self.console.show_cursor(True)
            self.console.set_alt_screen(False)
        finally:
            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._saved)
