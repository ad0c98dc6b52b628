from __future__ import annotations

from enum import Enum, auto
from typing import Optional


class NavigationEvent(Enum):
    """Source-neutral navigation command consumed by the selection engine."""

    MOVE_UP = auto()
    MOVE_DOWN = auto()
    CONFIRM = auto()
    CANCEL = auto()


class InputProvider:
    def translate(self, raw_event) -> Optional[NavigationEvent]:  # type: ignore[no-untyped-def]
        raise NotImplementedError
