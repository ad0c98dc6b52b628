from __future__ import annotations

from typing import Optional, Sequence, Tuple

from rich.align import Align
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from ..display.catalog import Output
from .theme import Theme

EMPTY_MESSAGE = "No connected displays found. Press Esc to exit."


class SelectorRenderer:
    """Draws the monitor list and help line onto a rich console.

    The screen is only repainted when the highlighted row, the list or the
    terminal size changed since the last frame.
    """

    def __init__(self, console: Console, theme: Optional[Theme] = None) -> None:
        self.console = console
        self.theme = theme or Theme()
        self._last_frame: Optional[Tuple] = None
        self.frames_drawn = 0

    def render(self, outputs: Sequence[Output], index: Optional[int]) -> None:
        frame_key = (tuple(o.name for o in outputs), index, tuple(self.console.size))
        if frame_key == self._last_frame:
            return
        self._last_frame = frame_key

        self.console.clear()
        self.console.print(
            Align.center(self.build(outputs, index), vertical="middle", height=self.console.height - 1)
        )
        self.frames_drawn += 1

    def build(self, outputs: Sequence[Output], index: Optional[int]) -> RenderableType:
        t = self.theme
        width = max(30, self.console.width * t.panel_percent // 100)

        if not outputs:
            body: RenderableType = Text(EMPTY_MESSAGE, style=t.message)
        else:
            lines = []
            for i, output in enumerate(outputs):
                label = f"{output.name} ({output.resolution})"
                if i == index:
                    lines.append(Text(t.highlight_symbol + label, style=t.highlight))
                else:
                    lines.append(Text(" " * len(t.highlight_symbol) + label, style=t.item))
            body = Group(*lines)

        panel = Panel(body, title=t.title, border_style=t.border, width=width)
        return Group(panel, self.help_line())

    def help_line(self) -> Text:
        t = self.theme
        return Text.assemble(
            ("[↑/↓] ", t.key_navigate),
            "Navigate  ",
            ("[Enter/A] ", t.key_select),
            "Select  ",
            ("[Esc/B] ", t.key_quit),
            "Quit",
        )
