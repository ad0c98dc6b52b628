from typing import List, Optional

import pytest

from console_mode.display.catalog import Output
from console_mode.inputs.abstraction import NavigationEvent
from console_mode.inputs.channel import EventChannel
from console_mode.ui.selector import Outcome, SelectionEngine, SelectionState, select_display_tui

UP = NavigationEvent.MOVE_UP
DOWN = NavigationEvent.MOVE_DOWN
CONFIRM = NavigationEvent.CONFIRM
CANCEL = NavigationEvent.CANCEL


class FakeKeyboard:
    """Returns scripted events (or raises scripted exceptions) one per poll."""

    def __init__(self, script: List[object]) -> None:
        self.script = list(script)
        self.polls = 0

    def poll(self, timeout: float) -> Optional[NavigationEvent]:
        self.polls += 1
        if not self.script:
            return None
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item  # type: ignore[return-value]


class FakeTerminal:
    def __init__(self) -> None:
        self.enters = 0
        self.restores = 0

    def __enter__(self) -> "FakeTerminal":
        self.enters += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.restores += 1


class RecordingRenderer:
    def __init__(self) -> None:
        self.frames: List[Optional[int]] = []

    def render(self, outputs, index) -> None:  # type: ignore[no-untyped-def]
        self.frames.append(index)


def _engine(outputs, keys, channel=None):  # type: ignore[no-untyped-def]
    terminal = FakeTerminal()
    engine = SelectionEngine(
        outputs,
        keyboard=FakeKeyboard(keys),
        channel=channel or EventChannel(),
        renderer=RecordingRenderer(),
        terminal=terminal,
        poll_timeout=0,
    )
    return engine, terminal


@pytest.mark.parametrize("count", [1, 2, 3, 7])
def test_wraparound_closure(tmp_path, count):
    outs = [Output(f"card0-DP-{i}", tmp_path, 1920, 1080) for i in range(count)]
    for event in (DOWN, UP):
        state = SelectionState(outs)
        for _ in range(count):
            state.apply(event)
        assert state.index == 0
        assert state.outcome is Outcome.PENDING


def test_move_wraps_at_edges(outputs):
    state = SelectionState(outputs)
    state.apply(UP)
    assert state.index == len(outputs) - 1
    state.apply(DOWN)
    assert state.index == 0


def test_empty_list_navigation_is_noop():
    state = SelectionState([])
    assert state.index is None
    for event in (UP, DOWN, CONFIRM, UP, CONFIRM):
        state.apply(event)
        assert state.index is None
        assert state.outcome is not Outcome.CHOSEN
        assert state.chosen is None


def test_confirm_chooses_highlighted(outputs):
    for i in range(len(outputs)):
        state = SelectionState(outputs)
        for _ in range(i):
            state.apply(DOWN)
        state.apply(CONFIRM)
        assert state.outcome is Outcome.CHOSEN
        assert state.chosen == outputs[i]


def test_cancel_from_any_state(outputs):
    pending = SelectionState(outputs)
    pending.apply(CANCEL)
    assert pending.outcome is Outcome.CANCELLED

    chosen = SelectionState(outputs)
    chosen.apply(CONFIRM)
    chosen.apply(CANCEL)
    assert chosen.outcome is Outcome.CANCELLED
    assert chosen.chosen is None

    empty = SelectionState([])
    empty.apply(CANCEL)
    assert empty.outcome is Outcome.CANCELLED


def test_moves_after_choice_are_ignored(outputs):
    state = SelectionState(outputs)
    state.apply(CONFIRM)
    state.apply(DOWN)
    assert state.index == 0
    assert state.chosen == outputs[0]


def test_run_returns_chosen_and_restores_terminal(outputs):
    engine, terminal = _engine(outputs, [DOWN, None, DOWN, CONFIRM])
    assert engine.run() == outputs[2]
    assert terminal.enters == 1
    assert terminal.restores == 1
    assert engine.state.screen_active is False
    assert engine.channel.closed


def test_run_cancel_returns_none(outputs):
    engine, terminal = _engine(outputs, [DOWN, CANCEL])
    assert engine.run() is None
    assert engine.state.outcome is Outcome.CANCELLED
    assert terminal.restores == 1


def test_run_restores_terminal_on_error(outputs):
    engine, terminal = _engine(outputs, [DOWN, OSError("tty gone")])
    with pytest.raises(OSError):
        engine.run()
    assert terminal.enters == 1
    assert terminal.restores == 1
    assert engine.state.screen_active is False
    assert engine.channel.closed


def test_controller_event_applied_before_key(outputs):
    channel = EventChannel()
    channel.send(DOWN)
    engine, _ = _engine(outputs, [UP], channel)
    engine.step()
    # DOWN then UP: back where we started
    assert engine.state.index == 0

    channel.send(CONFIRM)
    engine.keyboard.script = [DOWN]
    engine.step()
    # CONFIRM first picks row 0; the later DOWN no longer moves anything
    assert engine.state.chosen == outputs[0]


def test_one_controller_event_drained_per_step(outputs):
    channel = EventChannel()
    for _ in range(2):
        channel.send(DOWN)
    engine, _ = _engine(outputs, [], channel)
    engine.step()
    assert engine.state.index == 1
    engine.step()
    assert engine.state.index == 2
    engine.step()
    assert engine.state.index == 2


def test_renders_every_iteration(outputs):
    engine, _ = _engine(outputs, [DOWN, None, CONFIRM])
    engine.run()
    assert engine.renderer.frames == [0, 1, 1]


def test_controller_only_session(outputs):
    channel = EventChannel()
    for event in (UP, CONFIRM):
        channel.send(event)
    engine, terminal = _engine(outputs, [], channel)
    assert engine.run() == outputs[-1]
    assert terminal.restores == 1


def test_single_output_bypasses_ui(outputs, config, console):
    assert select_display_tui(outputs[:1], config, console) is outputs[0]
