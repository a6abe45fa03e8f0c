"""
GUI module for VoiceType.

Thin PyQt6 shell around the recording controller.

Components:
    SystemTray: Tray icon with state colours, context menu and notifications.
    DebugLogWindow: Read-only transcript log, also the debug-mode sink.
    QtClipboardSink: Last-resort clipboard used by the text injector.
"""

from .clipboard import QtClipboardSink
from .debug_log import DebugLogWindow
from .tray import SystemTray

__all__ = [
    'DebugLogWindow',
    'QtClipboardSink',
    'SystemTray',
]
