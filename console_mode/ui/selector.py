"""Interactive monitor selection driven by keyboard and gamepad."""
from __future__ import annotations

import logging
from enum import Enum, auto
from typing import TYPE_CHECKING, List, Optional, Sequence

from rich.console import Console

from ..display.catalog import Output
from ..inputs.abstraction import NavigationEvent
from ..inputs.channel import EventChannel
from ..inputs.evdev_gamepad import GamepadReader
from ..inputs.keyboard import TerminalKeyboard, TerminalSession
from ..logging_setup import quiet_console_logging
from .renderer import SelectorRenderer

if TYPE_CHECKING:
    from ..config import AppConfig


class Outcome(Enum):
    PENDING = auto()
    CHOSEN = auto()
    CANCELLED = auto()


class SelectionState:
    """Highlighted row plus completion outcome.

    ``index`` is None for an empty list. Moves wrap around; CONFIRM picks the
    highlighted output; CANCEL ends the selection from any state.
    """

    def __init__(self, outputs: Sequence[Output]) -> None:
        self.outputs: List[Output] = list(outputs)
        self.index: Optional[int] = 0 if self.outputs else None
        self.outcome = Outcome.PENDING
        self.chosen: Optional[Output] = None
        self.screen_active = False

    @property
    def pending(self) -> bool:
        return self.outcome is Outcome.PENDING

    def apply(self, event: NavigationEvent) -> None:
        if event is NavigationEvent.CANCEL:
            self.outcome = Outcome.CANCELLED
            self.chosen = None
            return
        if not self.pending or self.index is None:
            return

        count = len(self.outputs)
        if event is NavigationEvent.MOVE_UP:
            self.index = (self.index - 1) % count
        elif event is NavigationEvent.MOVE_DOWN:
            self.index = (self.index + 1) % count
        elif event is NavigationEvent.CONFIRM:
            self.chosen = self.outputs[self.index]
            self.outcome = Outcome.CHOSEN


class SelectionEngine:
    """Single-threaded redraw/poll loop over a SelectionState.

    Each iteration renders, takes at most one controller event from the
    channel without blocking, then waits up to ``poll_timeout`` seconds for
    one key. Controller events are applied before keyboard events.
    """

    def __init__(
        self,
        outputs: Sequence[Output],
        keyboard: TerminalKeyboard,
        channel: EventChannel,
        renderer: SelectorRenderer,
        terminal: TerminalSession,
        poll_timeout: float = 0.05,
    ) -> None:
        self.state = SelectionState(outputs)
        self.keyboard = keyboard
        self.channel = channel
        self.renderer = renderer
        self.terminal = terminal
        self.poll_timeout = poll_timeout
        self._log = logging.getLogger(__name__)

    def step(self) -> None:
        self.renderer.render(self.state.outputs, self.state.index)

        controller_event = self.channel.try_receive()
        key_event = self.keyboard.poll(self.poll_timeout)

        for event in (controller_event, key_event):
            if event is None:
                continue
            self._log.debug("Applying %s at index %s", event.name, self.state.index)
            self.state.apply(event)

    def run(self) -> Optional[Output]:
        """Loop until chosen or cancelled; returns the chosen output or None.

        The terminal session is released and the channel closed on every exit
        path, including exceptions from the keyboard.
        """
        try:
            with self.terminal:
                self.state.screen_active = True
                try:
                    while self.state.pending:
                        self.step()
                finally:
                    self.state.screen_active = False
        finally:
            self.channel.close()

        if self.state.outcome is Outcome.CHOSEN:
            self._log.info("Selected display %s", self.state.chosen.name)  # type: ignore[union-attr]
        else:
            self._log.info("Display selection cancelled")
        return self.state.chosen


def select_display_tui(outputs: Sequence[Output], config: "AppConfig", console: Console) -> Optional[Output]:
    """Pick an output interactively; a lone output is returned without a UI."""
    if len(outputs) == 1:
        return outputs[0]

    channel = EventChannel()
    reader = GamepadReader(channel, device_dir=config.input_dir, retry_backoff=config.controller_retry_backoff)
    reader.start()

    engine = SelectionEngine(
        outputs,
        keyboard=TerminalKeyboard(),
        channel=channel,
        renderer=SelectorRenderer(console),
        terminal=TerminalSession(console),
        poll_timeout=config.poll_timeout,
    )
    with quiet_console_logging():
        return engine.run()
