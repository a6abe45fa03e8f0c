"""
Global toggle hotkey for VoiceType.

Listens for one key chord anywhere on the desktop and calls
``on_toggle`` each time it is pressed. On X11 the keyboard is read with
pynput; on Wayland, where clients cannot grab global keys, evdev reads the
keyboard devices directly.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Hashable, Optional, Set

from ..exceptions import EvdevPermissionError, HotkeyError, HotkeyRegistrationError
from ..input.session import SessionKind, detect_session_kind

logger = logging.getLogger(__name__)

DEFAULT_HOTKEY = "ctrl+alt+space"

MODIFIERS = frozenset({"ctrl", "shift", "alt", "super"})

_MODIFIER_ALIASES = {
    "control": "ctrl",
    "meta": "super",
    "win": "super",
}

TRIGGER_KEYS = frozenset({
    "space", "enter", "tab", "escape", "backspace", "delete", "insert",
    "home", "end", "pageup", "pagedown", "up", "down", "left", "right",
    "pause", "scrolllock",
    "f1", "f2", "f3", "f4", "f5", "f6", "f7", "f8", "f9", "f10", "f11", "f12",
})

_TRIGGER_ALIASES = {
    "return": "enter",
    "esc": "escape",
}


@dataclass(frozen=True)
class Hotkey:
    """A parsed key chord: modifiers plus one trigger key."""

    modifiers: FrozenSet[str]
    trigger: str

    def __str__(self) -> str:
        order = ["ctrl", "shift", "alt", "super"]
        parts = [m for m in order if m in self.modifiers]
        return "+".join(parts + [self.trigger])


def parse_hotkey(hotkey_str: str) -> Hotkey:
    """
    Parse a hotkey string such as "ctrl+alt+space".

    Args:
        hotkey_str: Modifiers and one trigger key joined by "+".
            Modifiers: ctrl, shift, alt, super (meta). Triggers: letters,
            digits, function keys and common named keys.

    Returns:
        The parsed Hotkey.

    Raises:
        HotkeyError: If the string is empty, has no trigger or more than
            one, or names an unsupported key.

    Example:
        >>> str(parse_hotkey("Alt+Ctrl+Space"))
        'ctrl+alt+space'
    """
    if not hotkey_str or not isinstance(hotkey_str, str):
        raise HotkeyError("Hotkey must be a non-empty string")

    modifiers: Set[str] = set()
    trigger = ""

    for part in (p.strip().lower() for p in hotkey_str.split("+")):
        if not part:
            raise HotkeyError(f"Invalid hotkey format: {hotkey_str}")
        part = _MODIFIER_ALIASES.get(part, part)
        if part in MODIFIERS:
            modifiers.add(part)
            continue
        if trigger:
            raise HotkeyError(f"Invalid hotkey format: multiple trigger keys in '{hotkey_str}'")
        trigger = _TRIGGER_ALIASES.get(part, part)

    if not trigger:
        raise HotkeyError(f"No trigger key found in hotkey: {hotkey_str}")

    single_char = len(trigger) == 1 and (trigger.isalpha() or trigger.isdigit())
    if not single_char and trigger not in TRIGGER_KEYS:
        raise HotkeyError(f"Unsupported trigger key: {trigger}")

    return Hotkey(frozenset(modifiers), trigger)


class _ChordTracker:
    """
    Tracks pressed keys and fires once per chord press.

    Holding the chord (key repeat) does not fire again; the trigger must be
    released first. Keys are tracked by identity so that releasing one of
    two held keys sharing a name (left and right Ctrl) keeps the name down.
    """

    def __init__(self, hotkey: Hotkey, on_activated: Callable[[], None]) -> None:
        self.hotkey = hotkey
        self._on_activated = on_activated
        self._pressed: Dict[Hashable, str] = {}
        self._active = False

    def press(self, name: Optional[str], key: Optional[Hashable] = None) -> None:
        if not name:
            return
        self._pressed[name if key is None else key] = name
        self._update()

    def release(self, name: Optional[str], key: Optional[Hashable] = None) -> None:
        if not name:
            return
        self._pressed.pop(name if key is None else key, None)
        self._update()

    def reset(self) -> None:
        self._pressed.clear()
        self._active = False

    def _update(self) -> None:
        held = set(self._pressed.values())
        is_active = self.hotkey.trigger in held and self.hotkey.modifiers <= held
        if is_active and not self._active:
            self._active = True
            logger.debug(f"Hotkey {self.hotkey} pressed")
            self._on_activated()
        elif not is_active:
            self._active = False


class HotkeyManager:
    """
    Global toggle hotkey with X11 and Wayland backends.

    Attributes:
        hotkey: The configured chord.
        on_toggle: Called each time the chord is pressed, on the listener
            thread.

    Example:
        >>> manager = HotkeyManager("ctrl+alt+space")
        >>> manager.on_toggle = controller.toggle
        >>> manager.start()
        >>> # ... application runs ...
        >>> manager.stop()

    Note:
        On Wayland, the user must be a member of the 'input' group to read
        keyboard devices: sudo usermod -aG input $USER
    """

    def __init__(
        self,
        hotkey: str = DEFAULT_HOTKEY,
        session_kind: Optional[SessionKind] = None,
    ) -> None:
        """
        Initialize the hotkey manager.

        Args:
            hotkey: Chord string, e.g. "ctrl+alt+space".
            session_kind: Backend selection. Detected from the environment
                when None.

        Raises:
            HotkeyError: If the hotkey string is invalid.
        """
        self._hotkey = parse_hotkey(hotkey)
        self._session_kind = session_kind or detect_session_kind()
        self._running = False
        self._lock = threading.Lock()
        self._tracker = _ChordTracker(self._hotkey, self._fire)

        # X11
        self._x11_listener = None

        # Wayland
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._evdev_devices: list = []
        self._evdev_names: dict = {}

        self.on_toggle: Optional[Callable[[], None]] = None

        logger.info(f"HotkeyManager initialized ({self._hotkey}, session={self._session_kind.value})")

    @property
    def hotkey(self) -> Hotkey:
        """Get the configured chord."""
        return self._hotkey

    @property
    def is_running(self) -> bool:
        """Check if the listener is running."""
        return self._running

    def _fire(self) -> None:
        if self.on_toggle:
            try:
                self.on_toggle()
            except Exception as e:
                logger.error(f"Error in on_toggle callback: {e}")

    def start(self) -> None:
        """
        Start listening in the background.

        Raises:
            HotkeyRegistrationError: If the listener cannot be started.
            EvdevPermissionError: On Wayland, if input devices are not
                readable.
        """
        with self._lock:
            if self._running:
                logger.warning("HotkeyManager is already running")
                return

            self._stop_event.clear()
            self._tracker.reset()

            try:
                if self._session_kind == SessionKind.WAYLAND:
                    self._start_wayland()
                else:
                    self._start_x11()
            except (EvdevPermissionError, HotkeyRegistrationError):
                raise
            except Exception as e:
                raise HotkeyRegistrationError(f"Failed to start hotkey listener: {e}") from e

            self._running = True
            logger.info("HotkeyManager started")

    def stop(self) -> None:
        """Stop listening. Safe to call multiple times."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()

            if self._session_kind == SessionKind.WAYLAND:
                self._stop_wayland()
            else:
                self._stop_x11()

            self._tracker.reset()
            logger.info("HotkeyManager stopped")

    # X11 (pynput)

    def _start_x11(self) -> None:
        try:
            from pynput import keyboard
        except ImportError as e:
            raise HotkeyRegistrationError(
                "pynput is required for X11 hotkey support. Install with: pip install pynput"
            ) from e

        names = {
            keyboard.Key.ctrl: "ctrl",
            keyboard.Key.ctrl_l: "ctrl",
            keyboard.Key.ctrl_r: "ctrl",
            keyboard.Key.shift: "shift",
            keyboard.Key.shift_l: "shift",
            keyboard.Key.shift_r: "shift",
            keyboard.Key.alt: "alt",
            keyboard.Key.alt_l: "alt",
            keyboard.Key.alt_r: "alt",
            keyboard.Key.alt_gr: "alt",
            keyboard.Key.cmd: "super",
            keyboard.Key.cmd_l: "super",
            keyboard.Key.cmd_r: "super",
            keyboard.Key.space: "space",
            keyboard.Key.enter: "enter",
            keyboard.Key.tab: "tab",
            keyboard.Key.esc: "escape",
            keyboard.Key.backspace: "backspace",
            keyboard.Key.delete: "delete",
            keyboard.Key.home: "home",
            keyboard.Key.end: "end",
            keyboard.Key.page_up: "pageup",
            keyboard.Key.page_down: "pagedown",
            keyboard.Key.up: "up",
            keyboard.Key.down: "down",
            keyboard.Key.left: "left",
            keyboard.Key.right: "right",
        }
        names.update({getattr(keyboard.Key, f"f{i}"): f"f{i}" for i in range(1, 13)})
        for optional in ("insert", "pause", "scroll_lock"):
            key = getattr(keyboard.Key, optional, None)
            if key is not None:
                names[key] = optional.replace("_", "")

        def key_name(key) -> Optional[str]:
            if key in names:
                return names[key]
            char = getattr(key, "char", None)
            if char:
                return char.lower()
            return None

        def key_id(key):
            # Characters are tracked by name since shift changes the KeyCode
            return key if key in names else None

        try:
            self._x11_listener = keyboard.Listener(
                on_press=lambda key: self._tracker.press(key_name(key), key_id(key)),
                on_release=lambda key: self._tracker.release(key_name(key), key_id(key)),
            )
            self._x11_listener.start()
        except Exception as e:
            raise HotkeyRegistrationError(f"Failed to start X11 listener: {e}") from e
        logger.debug("X11 pynput listener started")

    def _stop_x11(self) -> None:
        if self._x11_listener is not None:
            try:
                self._x11_listener.stop()
            except Exception as e:
                logger.warning(f"Error stopping X11 listener: {e}")
            finally:
                self._x11_listener = None

    # Wayland (evdev)

    def _start_wayland(self) -> None:
        try:
            import evdev
        except ImportError as e:
            raise HotkeyRegistrationError(
                "evdev is required for Wayland hotkey support. Install with: pip install evdev"
            ) from e

        ec = evdev.ecodes
        self._evdev_names = _evdev_name_map(ec)

        keyboards = {}
        try:
            paths = evdev.list_devices()
        except PermissionError as e:
            raise EvdevPermissionError(
                "No permission to read input devices. Add your user to the "
                "'input' group: sudo usermod -aG input $USER (then log in again)"
            ) from e

        for path in paths:
            try:
                device = evdev.InputDevice(path)
            except PermissionError:
                continue
            except OSError as e:
                logger.debug(f"Error opening device {path}: {e}")
                continue

            keys = device.capabilities().get(ec.EV_KEY, [])
            if ec.KEY_A not in keys and ec.KEY_SPACE not in keys:
                device.close()
                continue

            # Some keyboards expose duplicate nodes; keep the one with modifiers
            has_modifiers = ec.KEY_LEFTCTRL in keys or ec.KEY_LEFTALT in keys
            previous = keyboards.get(device.name)
            if previous is not None:
                if has_modifiers and not previous[1]:
                    previous[0].close()
                else:
                    device.close()
                    continue
            keyboards[device.name] = (device, has_modifiers)
            logger.debug(f"Found keyboard device: {device.name}")

        if not keyboards:
            raise EvdevPermissionError(
                "No readable keyboard devices found. Ensure you are in the 'input' group."
            )

        self._evdev_devices = [device for device, _ in keyboards.values()]
        self._thread = threading.Thread(
            target=self._evdev_event_loop,
            daemon=True,
            name="HotkeyManager-evdev",
        )
        self._thread.start()
        logger.debug(f"Wayland evdev listener started with {len(self._evdev_devices)} device(s)")

    def _stop_wayland(self) -> None:
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

        for device in self._evdev_devices:
            try:
                device.close()
            except OSError as e:
                logger.debug(f"Error closing device: {e}")
        self._evdev_devices = []

    def _evdev_event_loop(self) -> None:
        import select

        import evdev

        while not self._stop_event.is_set():
            try:
                readable, _, _ = select.select(self._evdev_devices, [], [], 0.1)
            except (OSError, ValueError) as e:
                if not self._stop_event.is_set():
                    logger.error(f"Error in evdev event loop: {e}")
                break

            for device in readable:
                try:
                    for event in device.read():
                        if event.type == evdev.ecodes.EV_KEY:
                            self.handle_key_code(event.code, event.value)
                except OSError as e:
                    logger.debug(f"Error reading device events: {e}")

        logger.debug("evdev event loop stopped")

    def handle_key_code(self, code: int, value: int) -> None:
        """
        Feed one evdev key event into the chord tracker.

        Args:
            code: evdev key code.
            value: 1 press, 0 release, 2 repeat (ignored).
        """
        name = self._evdev_names.get(code)
        if value == 1:
            self._tracker.press(name, code)
        elif value == 0:
            self._tracker.release(name, code)

    def __enter__(self) -> "HotkeyManager":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


def _evdev_name_map(ec) -> dict:
    """Map evdev key codes to the key names used in hotkey strings."""
    pairs = {
        "KEY_LEFTCTRL": "ctrl", "KEY_RIGHTCTRL": "ctrl",
        "KEY_LEFTSHIFT": "shift", "KEY_RIGHTSHIFT": "shift",
        "KEY_LEFTALT": "alt", "KEY_RIGHTALT": "alt",
        "KEY_LEFTMETA": "super", "KEY_RIGHTMETA": "super",
        "KEY_SPACE": "space", "KEY_ENTER": "enter", "KEY_TAB": "tab",
        "KEY_ESC": "escape", "KEY_BACKSPACE": "backspace", "KEY_DELETE": "delete",
        "KEY_INSERT": "insert", "KEY_HOME": "home", "KEY_END": "end",
        "KEY_PAGEUP": "pageup", "KEY_PAGEDOWN": "pagedown",
        "KEY_UP": "up", "KEY_DOWN": "down", "KEY_LEFT": "left", "KEY_RIGHT": "right",
        "KEY_PAUSE": "pause", "KEY_SCROLLLOCK": "scrolllock",
    }
    pairs.update({f"KEY_F{i}": f"f{i}" for i in range(1, 13)})
    pairs.update({f"KEY_{c}": c.lower() for c in "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"})

    mapping = {}
    for attr, name in pairs.items():
        code = getattr(ec, attr, None)
        if code is not None:
            mapping[code] = name
    return mapping
