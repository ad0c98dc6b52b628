import io
import subprocess
from pathlib import Path

import pytest

from console_mode.display.capabilities import Capabilities
from console_mode.display.catalog import Output
from console_mode.player.gamescope_launcher import (
    GamescopeLauncher,
    LaunchError,
    is_running_nested,
    output_short_name,
    setup_environment,
)

DP1 = Output("card1-DP-1", Path("/nonexistent/card1-DP-1"), 2560, 1440)


class FakeRunner:
    """Records commands and answers with scripted exit codes."""

    def __init__(self, *codes: int) -> None:
        self.codes = list(codes)
        self.calls = []

    def __call__(self, cmd, check=False):  # type: ignore[no-untyped-def]
        self.calls.append(list(cmd))
        code = self.codes.pop(0) if self.codes else 0
        return subprocess.CompletedProcess(cmd, code)


def _launcher(config, console, runner, stdin=None):  # type: ignore[no-untyped-def]
    return GamescopeLauncher(config, console, runner=runner, stdin=stdin)


def test_success_runs_exact_command(config, console):
    runner = FakeRunner(0)
    caps = Capabilities(vrr=True, hdr=False, max_refresh_rate=144, max_bpc=10)
    assert _launcher(config, console, runner).launch(DP1, caps) == 0
    assert runner.calls == [[
        "gamescope",
        "-W", "2560", "-H", "1440", "-r", "144",
        "--prefer-output", "DP-1",
        "--adaptive-sync",
        "--mangoapp",
        "-f", "-e",
        "--", "steam", "-bigpicture",
    ]]


def test_hdr_flags_and_extra_args(config, console):
    config.extra_args = ["--rt"]
    config.steam_args = ["-silent"]
    config.gamescope_bin = "/opt/gamescope"
    runner = FakeRunner(0)
    caps = Capabilities(vrr=False, hdr=True, max_refresh_rate=60, max_bpc=8)
    _launcher(config, console, runner).launch(DP1, caps)
    cmd = runner.calls[0]
    assert cmd[0] == "/opt/gamescope"
    assert "--adaptive-sync" not in cmd
    assert cmd.index("--hdr-enabled") < cmd.index("--hdr-itm-enable")
    assert cmd[cmd.index("--") - 1] == "--rt"
    assert cmd[-3:] == ["steam", "-bigpicture", "-silent"]


def test_failure_retries_once_with_safe_args(config, console):
    runner = FakeRunner(1, 0)
    caps = Capabilities(vrr=True, hdr=True, max_refresh_rate=165, max_bpc=10)
    status = _launcher(config, console, runner, stdin=io.StringIO("\n")).launch(DP1, caps)
    assert status == 0
    assert len(runner.calls) == 2
    assert runner.calls[1] == [
        "gamescope", "-W", "2560", "-H", "1440", "-r", "120", "-f", "-e",
        "--", "steam", "-bigpicture",
    ]
    assert "Gamescope failed to start!" in console.file.getvalue()


def test_safe_retry_status_is_returned(config, console):
    runner = FakeRunner(1, 3)
    caps = Capabilities(vrr=False, hdr=False, max_refresh_rate=60, max_bpc=8)
    assert _launcher(config, console, runner, stdin=io.StringIO("\n")).launch(DP1, caps) == 3
    assert len(runner.calls) == 2


def test_missing_binary_raises(config, console):
    def runner(cmd, check=False):  # type: ignore[no-untyped-def]
        raise FileNotFoundError(cmd[0])

    caps = Capabilities(vrr=False, hdr=False, max_refresh_rate=60, max_bpc=8)
    with pytest.raises(LaunchError):
        _launcher(config, console, runner).launch(DP1, caps)


def test_fallback_args(config, console):
    runner = FakeRunner(0)
    assert _launcher(config, console, runner).launch_fallback() == 0
    assert runner.calls[0][:10] == ["gamescope", "-W", "1920", "-H", "1080", "-r", "60", "-f", "-e", "--"]


def test_nested_args_use_config(config, console):
    config.resolution = "1280x800"
    config.refresh_rate = 90
    runner = FakeRunner(0)
    _launcher(config, console, runner).launch_nested()
    assert runner.calls[0][:16] == [
        "gamescope",
        "-W", "1280", "-H", "800", "-r", "90",
        "--nested-width", "1280", "--nested-height", "800", "--nested-refresh", "90",
        "-e", "--mangoapp", "--",
    ]


def test_nested_defaults_and_failure(config, console):
    runner = FakeRunner(2)
    launcher = _launcher(config, console, runner)
    assert launcher.build_nested_args()[:6] == ["-W", "1920", "-H", "1080", "-r", "60"]
    with pytest.raises(LaunchError):
        launcher.launch_nested()


@pytest.mark.parametrize("name,short", [("card1-HDMI-A-1", "HDMI-A-1"), ("card0-eDP-1", "eDP-1"), ("eDP", "eDP")])
def test_output_short_name(name, short):
    assert output_short_name(Output(name, Path("/x"), 1, 1)) == short


def test_nested_detection():
    assert is_running_nested({"WAYLAND_DISPLAY": "wayland-0"})
    assert is_running_nested({"DISPLAY": ":0"})
    assert not is_running_nested({"XDG_SESSION_TYPE": "tty"})


def test_setup_environment():
    env = {"XDG_RUNTIME_DIR": "/run/user/1000"}
    setup_environment(env)
    assert env == {
        "XDG_RUNTIME_DIR": "/run/user/1000",
        "STEAM_FORCE_DESKTOPUI_SCALING": "1",
        "XDG_SESSION_TYPE": "wayland",
        "LIBSEAT_BACKEND": "logind",
    }
    bare = {}
    setup_environment(bare)
    assert bare["XDG_RUNTIME_DIR"].startswith("/run/user/")
