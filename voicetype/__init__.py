"""
VoiceType - Dictation for the Linux desktop (X11 and Wayland)

This package records a short clip on demand, sends it to a speech-to-text
HTTP service and delivers the text into the focused application.

Modules:
    audio: Audio capture backends and temporary file management
    transcription: HTTP client for the speech-to-text service
    input: Focused window inspection and text delivery
    hotkey: Global toggle hotkey
    gui: PyQt6 tray icon and debug log
"""

__version__ = "0.1.0"
__author__ = "VoiceType Contributors"
