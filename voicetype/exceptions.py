"""
Custom exceptions for VoiceType.

This module defines application-specific exceptions for error handling
and user feedback across the capture, transcription and injection stages.
Every failure is session-scoped: the recording controller catches these,
reports them once and returns to idle.
"""

from typing import Optional


class VoiceTypeError(Exception):
    """Base exception for all VoiceType errors."""
    pass


class DependencyMissingError(VoiceTypeError):
    """Raised when a required external tool is not installed."""

    def __init__(self, tool: str, message: Optional[str] = None) -> None:
        self.tool = tool
        super().__init__(message or f"Required tool not found: {tool}")


# Capture Exceptions
class CapturePipelineError(VoiceTypeError):
    """Raised when the audio capture pipeline cannot start or finish."""
    pass


# Transcription Exceptions
class TranscriptionError(VoiceTypeError):
    """Base exception for transcription-related errors."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TranscriptionTransportError(TranscriptionError):
    """Raised for network failures, non-2xx responses or an unavailable service."""
    pass


class TranscriptionFormatError(TranscriptionError):
    """Raised when the service answers with malformed or unexpected JSON."""
    pass


# Input Exceptions
class InjectionStrategyFailure(VoiceTypeError):
    """
    Raised internally when a single text delivery strategy fails.

    Never surfaced to the user; the injector falls through to the next
    strategy instead.
    """
    pass


# Hotkey Exceptions
class HotkeyError(VoiceTypeError):
    """Base exception for hotkey-related errors."""
    pass


class HotkeyRegistrationError(HotkeyError):
    """Raised when global hotkey registration fails."""
    pass


class EvdevPermissionError(HotkeyError):
    """Raised when user lacks permissions for evdev (not in 'input' group)."""
    pass


# Configuration Exceptions
class ConfigurationError(VoiceTypeError):
    """Raised when configuration loading or saving fails."""
    pass
