"""
Focused window inspection for VoiceType.

Decides whether the focused window behaves like a terminal, which changes
the paste gesture that works: terminals want Ctrl+Shift+V or the primary
selection, everything else takes Ctrl+V.
"""

import json
import os
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from .session import SessionKind, ToolRunner

logger = logging.getLogger(__name__)

# Terminal emulator window classes
TERMINAL_EMULATORS: FrozenSet[str] = frozenset({
    "gnome-terminal",
    "konsole",
    "xterm",
    "uxterm",
    "alacritty",
    "kitty",
    "tilix",
    "terminator",
    "urxvt",
    "rxvt",
    "wezterm",
    "foot",
    "footclient",
    "st",
    "st-256color",
    "xfce4-terminal",
    "mate-terminal",
    "lxterminal",
    "kgx",
    "ptyxis",
    "guake",
    "yakuake",
    "terminology",
    "ghostty",
})

# Code editors that embed a terminal pane in the same window
CODE_EDITORS: FrozenSet[str] = frozenset({
    "code",
    "vscode",
    "code-oss",
    "vscodium",
    "cursor",
})

# Words in an editor title that indicate the terminal pane has focus
TERMINAL_TITLE_KEYWORDS = (
    "terminal",
    "bash",
    "zsh",
    "fish",
    "sh",
    "pwsh",
    "powershell",
    "tmux",
)

# Names this short only match a whole token, so "st" does not match "steam"
_SHORT_NAME_LENGTH = 5

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
# A keyword after a dot is a file extension ("deploy.sh"), not a shell
_TITLE_KEYWORD_PATTERN = re.compile(
    r"(?<![.\w])(?:" + "|".join(re.escape(k) for k in TERMINAL_TITLE_KEYWORDS) + r")\b"
)
_XPROP_STRING = re.compile(r'"([^"]*)"')


@dataclass(frozen=True)
class WindowContext:
    """Snapshot of the focused window at the moment injection begins."""

    wm_class: str = ""
    title: str = ""


def _tokens(value: str) -> List[str]:
    return [t for t in _TOKEN_SPLIT.split(value.lower()) if t]


def _matches_name(wm_class: str, names: FrozenSet[str]) -> bool:
    lowered = wm_class.lower()
    tokens = _tokens(lowered)
    for name in names:
        if lowered == name:
            return True
        if len(name) <= _SHORT_NAME_LENGTH:
            if name in tokens:
                return True
        elif name in lowered:
            return True
    return False


def _matches_editor(wm_class: str) -> bool:
    lowered = wm_class.lower()
    if lowered in CODE_EDITORS:
        return True
    tokens = _tokens(lowered)
    return any(name in tokens or ("-" in name and name in lowered) for name in CODE_EDITORS)


def classify(wm_class: str, title: str) -> bool:
    """
    Classify a window as terminal-like.

    Rules, case-insensitive:
        1. A terminal emulator window class -> True.
        2. A code editor window class -> True only if the title shows the
           integrated terminal has focus.
        3. Anything else -> False.

    Example:
        >>> classify("gnome-terminal", "")
        True
        >>> classify("code", "bash — Integrated Terminal")
        True
        >>> classify("code", "main.rs — Visual Studio Code")
        False
    """
    wm_class = wm_class or ""
    title = title or ""

    if _matches_name(wm_class, TERMINAL_EMULATORS):
        return True

    if _matches_editor(wm_class):
        return bool(_TITLE_KEYWORD_PATTERN.search(title.lower()))

    return False


def parse_xprop_wm_class(output: str) -> str:
    """
    Extract the class names from ``xprop WM_CLASS`` output.

    Example:
        >>> parse_xprop_wm_class('WM_CLASS(STRING) = "gnome-terminal-server", "Gnome-terminal"')
        'gnome-terminal-server Gnome-terminal'
    """
    return " ".join(_XPROP_STRING.findall(output))


def find_focused_sway_node(node: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Walk a ``swaymsg -t get_tree`` tree and return the focused window node.

    Tiling and floating children are both searched. Workspaces and outputs
    are never returned even if marked focused.
    """
    stack = [node]
    while stack:
        current = stack.pop()
        if not isinstance(current, dict):
            continue
        if current.get("focused") and current.get("type") in ("con", "floating_con"):
            return current
        stack.extend(current.get("nodes") or [])
        stack.extend(current.get("floating_nodes") or [])
    return None


class FocusProbe:
    """
    Reads the focused window's class and title.

    X11 sessions are queried with xdotool and xprop. On Wayland the
    compositor must cooperate: Sway is queried with swaymsg and Hyprland
    with hyprctl. When neither answers and an X display is present, the X11
    probe is tried so XWayland windows still classify. Anything else yields
    an empty context which classifies as non-terminal. Probing never raises.
    """

    def __init__(
        self,
        runner: Optional[ToolRunner] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._runner = runner or ToolRunner(timeout=1.0)
        self._environ = environ

    def current(self, session_kind: SessionKind) -> WindowContext:
        """Return a fresh snapshot of the focused window."""
        try:
            if session_kind == SessionKind.WAYLAND:
                context = self._probe_wayland()
            else:
                context = self._probe_x11()
        except Exception as e:
            logger.warning(f"Focused window detection failed: {e}")
            context = WindowContext()

        logger.debug(f"Focused window: class={context.wm_class!r}, title={context.title!r}")
        return context

    def _probe_x11(self) -> WindowContext:
        window_id = self._runner.output(["xdotool", "getactivewindow"])
        if not window_id or not window_id.strip():
            return WindowContext()
        window_id = window_id.strip().splitlines()[-1].strip()
        if window_id.lower() in {"0", "0x0"}:
            return WindowContext()

        title = self._runner.output(["xdotool", "getwindowname", window_id]) or ""
        class_output = self._runner.output(["xprop", "-id", window_id, "WM_CLASS"]) or ""

        return WindowContext(
            wm_class=parse_xprop_wm_class(class_output),
            title=title.strip(),
        )

    def _probe_wayland(self) -> WindowContext:
        for probe in (self._probe_sway, self._probe_hyprland):
            context = probe()
            if context.wm_class or context.title:
                return context

        environ = os.environ if self._environ is None else self._environ
        if environ.get("DISPLAY"):
            logger.debug("No compositor answered, trying the XWayland display")
            return self._probe_x11()
        return WindowContext()

    def _load_json(self, argv: List[str]) -> Any:
        if not self._runner.available(argv[0]):
            return None

        output = self._runner.output(argv)
        if not output:
            return None

        try:
            return json.loads(output)
        except ValueError:
            logger.debug(f"{argv[0]} returned invalid JSON")
            return None

    def _probe_sway(self) -> WindowContext:
        tree = self._load_json(["swaymsg", "-t", "get_tree"])
        if not isinstance(tree, dict):
            return WindowContext()

        node = find_focused_sway_node(tree)
        if node is None:
            return WindowContext()

        # XWayland clients carry no app_id, only X11 window properties
        properties = node.get("window_properties") or {}
        wm_class = node.get("app_id") or properties.get("class") or properties.get("instance") or ""
        return WindowContext(wm_class=str(wm_class), title=str(node.get("name") or ""))

    def _probe_hyprland(self) -> WindowContext:
        data = self._load_json(["hyprctl", "activewindow", "-j"])
        if not isinstance(data, dict):
            return WindowContext()

        return WindowContext(
            wm_class=str(data.get("class") or data.get("initialClass") or ""),
            title=str(data.get("title") or ""),
        )
