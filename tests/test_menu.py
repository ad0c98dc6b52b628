import io
import subprocess

import pytest

from console_mode.ui.menu import (
    DisplayNotFoundError,
    SelectionError,
    find_output,
    select_display_launcher,
    select_display_menu,
)


def _picker(output="", code=0, error=None):  # type: ignore[no-untyped-def]
    calls = []

    def runner(argv, input=None, **kwargs):  # type: ignore[no-untyped-def]
        calls.append((argv, input))
        if error is not None:
            raise error
        return subprocess.CompletedProcess(argv, code, stdout=output)

    runner.calls = calls  # type: ignore[attr-defined]
    return runner


def test_numbered_menu_choice(outputs, console):
    assert select_display_menu(outputs, console, stdin=io.StringIO("2\n")) == outputs[1]
    text = console.file.getvalue()
    assert "[1] card0-HDMI-A-1 - 1920x1080" in text
    assert "[3] card1-DP-3 - 3840x2160" in text


@pytest.mark.parametrize("answer", ["0\n", "9\n", "-1\n"])
def test_numbered_menu_out_of_range_uses_first(outputs, console, answer):
    assert select_display_menu(outputs, console, stdin=io.StringIO(answer)) == outputs[0]


def test_numbered_menu_rejects_text(outputs, console):
    with pytest.raises(SelectionError):
        select_display_menu(outputs, console, stdin=io.StringIO("second\n"))


def test_launcher_selection(outputs):
    runner = _picker(output="card1-DP-2 - 2560x1440\n")
    assert select_display_launcher(outputs, "rofi -dmenu -p 'Pick display'", runner=runner) == outputs[1]
    argv, options = runner.calls[0]
    assert argv == ["rofi", "-dmenu", "-p", "Pick display"]
    assert options.splitlines() == [
        "card0-HDMI-A-1 - 1920x1080",
        "card1-DP-2 - 2560x1440",
        "card1-DP-3 - 3840x2160",
    ]


@pytest.mark.parametrize(
    "runner",
    [
        _picker(code=1),
        _picker(output="   \n"),
        _picker(output="card9-DP-9 - 1x1\n"),
        _picker(error=FileNotFoundError("dmenu")),
    ],
    ids=["cancelled", "empty", "unknown", "spawn-failure"],
)
def test_launcher_errors(outputs, runner):
    with pytest.raises(SelectionError):
        select_display_launcher(outputs, "dmenu", runner=runner)


def test_launcher_empty_command(outputs):
    with pytest.raises(SelectionError):
        select_display_launcher(outputs, "  ", runner=_picker())


def test_find_output(outputs):
    assert find_output(outputs, "card1-DP-3") == outputs[2]
    with pytest.raises(DisplayNotFoundError):
        find_output(outputs, "card1-DP-4")
