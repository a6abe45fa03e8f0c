"""
Input module for VoiceType.

Provides focused window inspection and text delivery.
"""

from .injector import InjectionMethod, InjectionOutcome, TextInjector
from .session import SessionKind, ToolRunner, detect_session_kind
from .window import FocusProbe, WindowContext, classify

__all__ = [
    'FocusProbe',
    'InjectionMethod',
    'InjectionOutcome',
    'SessionKind',
    'TextInjector',
    'ToolRunner',
    'WindowContext',
    'classify',
    'detect_session_kind',
]
