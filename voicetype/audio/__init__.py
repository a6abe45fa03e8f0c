"""
Audio module for VoiceType.

Provides the capture backends and temporary file management.
"""

from .capture import (
    AudioCapture,
    CaptureHandle,
    GStreamerCapture,
    create_capture,
    discard_temp_file,
    make_temp_wav_path,
)

__all__ = [
    'AudioCapture',
    'CaptureHandle',
    'GStreamerCapture',
    'create_capture',
    'discard_temp_file',
    'make_temp_wav_path',
]
