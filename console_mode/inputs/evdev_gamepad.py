from __future__ import annotations

import fcntl
import logging
import os
import threading
import time
from typing import Callable, Optional

try:
    import evdev
    from evdev import InputDevice, ecodes
    EVDEV_AVAILABLE = True
except ImportError:
    EVDEV_AVAILABLE = False
    evdev = None
    InputDevice = None
    ecodes = None

from .abstraction import InputProvider, NavigationEvent
from .channel import ChannelClosed, EventChannel


def find_gamepad(device_dir: str = "/dev/input"):  # type: ignore[no-untyped-def]
    """Open the first event device that exposes gamepad face buttons.

    A device qualifies when its EV_KEY capabilities contain BTN_SOUTH or
    BTN_EAST. Devices are probed in path order. Returns None when nothing
    qualifies or evdev is not installed.
    """
    log = logging.getLogger("evdev_gamepad")
    if not EVDEV_AVAILABLE:
        log.info("evdev not available - controller input disabled")
        return None

    for path in sorted(evdev.list_devices(device_dir)):
        try:
            device = InputDevice(path)
        except OSError as exc:
            log.debug(f"Cannot open {path}: {exc}")
            continue

        try:
            keys = device.capabilities().get(ecodes.EV_KEY, [])
        except OSError as exc:
            log.debug(f"Cannot query {path}: {exc}")
            device.close()
            continue
        has_south = ecodes.BTN_SOUTH in keys
        has_east = ecodes.BTN_EAST in keys
        log.debug(f"Opened {path}: '{device.name}' BTN_SOUTH={has_south} BTN_EAST={has_east}")
        if has_south or has_east:
            log.info(f"Gamepad detected: {device.name} ({path})")
            try:
                flags = fcntl.fcntl(device.fd, fcntl.F_GETFL)
                fcntl.fcntl(device.fd, fcntl.F_SETFL, flags | os.O_NONBLOCK)
            except OSError as exc:
                log.warning(f"Could not set non-blocking mode for {device.name}: {exc}")
            return device
        device.close()

    log.info("No gamepad found in %s", device_dir)
    return None


class GamepadInputProvider(InputProvider):
    """Maps raw evdev events from a gamepad to navigation events.

    Mapping:
    - D-pad up (BTN_DPAD_UP or ABS_HAT0Y < 0) -> MOVE_UP
    - D-pad down (BTN_DPAD_DOWN or ABS_HAT0Y > 0) -> MOVE_DOWN
    - South / West face buttons (A/Cross, X/Square) -> CONFIRM
    - East face button (B/Circle) -> CANCEL

    Only presses are forwarded; releases, autorepeat and hat centring map to None.
    """

    def __init__(self) -> None:
        if not EVDEV_AVAILABLE:
            raise RuntimeError("evdev not available - install with: pip install evdev")
        self._buttons = {
            ecodes.BTN_DPAD_UP: NavigationEvent.MOVE_UP,
            ecodes.BTN_DPAD_DOWN: NavigationEvent.MOVE_DOWN,
            ecodes.BTN_SOUTH: NavigationEvent.CONFIRM,
            ecodes.BTN_WEST: NavigationEvent.CONFIRM,
            ecodes.BTN_EAST: NavigationEvent.CANCEL,
        }

    def translate(self, raw_event) -> Optional[NavigationEvent]:  # type: ignore[no-untyped-def]
        if raw_event.type == ecodes.EV_KEY:
            if raw_event.value != 1:
                return None
            return self._buttons.get(raw_event.code)
        if raw_event.type == ecodes.EV_ABS and raw_event.code == ecodes.ABS_HAT0Y:
            if raw_event.value < 0:
                return NavigationEvent.MOVE_UP
            if raw_event.value > 0:
                return NavigationEvent.MOVE_DOWN
        return None


class GamepadReader:
    """Background thread feeding gamepad navigation into an EventChannel.

    The thread never touches terminal state. It exits on its own when no
    gamepad exists or when the channel is closed; transient read errors are
    retried after ``retry_backoff`` seconds.
    """

    def __init__(
        self,
        channel: EventChannel,
        device_dir: str = "/dev/input",
        retry_backoff: float = 0.1,
        poll_interval: float = 0.01,
        finder: Optional[Callable[[str], object]] = None,
        provider: Optional[InputProvider] = None,
    ) -> None:
        self._log = logging.getLogger("evdev_gamepad")
        self.channel = channel
        self.device_dir = device_dir
        self.retry_backoff = retry_backoff
        self.poll_interval = poll_interval
        self._finder = finder or find_gamepad
        self._provider = provider
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        t = threading.Thread(target=self._loop, name="GamepadReader", daemon=True)
        self._thread = t
        t.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        self._log.debug("Controller reader thread started")
        device = self._finder(self.device_dir)
        if device is None:
            self._log.debug("No gamepad, controller reader exiting")
            return

        provider = self._provider or GamepadInputProvider()
        try:
            self._pump(device, provider)
        finally:
            try:
                device.close()
            except OSError as exc:
                self._log.debug(f"Error closing gamepad: {exc}")
        self._log.debug("Controller reader thread stopped")

    def _pump(self, device, provider: InputProvider) -> None:  # type: ignore[no-untyped-def]
        while not self.channel.closed:
            try:
                for raw in device.read():
                    nav = provider.translate(raw)
                    if nav is None:
                        continue
                    self._log.debug(f"Gamepad {raw.type}/{raw.code}={raw.value} -> {nav.name}")
                    self.channel.send(nav)
            except BlockingIOError:
                time.sleep(self.poll_interval)
            except ChannelClosed:
                self._log.debug("Channel closed, exiting controller reader")
                return
            except OSError as exc:
                self._log.debug(f"Error fetching gamepad events: {exc}")
                time.sleep(self.retry_backoff)

