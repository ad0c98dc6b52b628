from __future__ import annotations

from rich.style import Style


class Theme:
    def __init__(self) -> None:
        self.border = Style(color="cyan")
        self.highlight = Style(color="black", bgcolor="cyan", bold=True)
        self.item = Style()
        self.message = Style(color="white")

        # Help line key hints
        self.key_navigate = Style(color="yellow")
        self.key_select = Style(color="green")
        self.key_quit = Style(color="red")

        self.highlight_symbol = "▶ "
        self.title = " Console Mode - Select Monitor "
        # Share of the terminal width taken by the selection panel
        self.panel_percent = 60
