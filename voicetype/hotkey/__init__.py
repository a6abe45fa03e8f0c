"""
Hotkey module for VoiceType.

Provides the global toggle hotkey, supporting both X11 (via pynput) and
Wayland (via evdev).
"""

from .manager import DEFAULT_HOTKEY, Hotkey, HotkeyManager, parse_hotkey

__all__ = ['DEFAULT_HOTKEY', 'Hotkey', 'HotkeyManager', 'parse_hotkey']
