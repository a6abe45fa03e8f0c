"""
Transcription module for VoiceType.

Provides the HTTP client for the speech-to-text service.
"""

from .client import (
    TranscriptionClient,
    TranscriptionErrorKind,
    TranscriptionResult,
    build_url,
)

__all__ = ['TranscriptionClient', 'TranscriptionErrorKind', 'TranscriptionResult', 'build_url']
