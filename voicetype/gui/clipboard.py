"""
Qt clipboard fallback for VoiceType.

Used when neither xclip/xsel nor wl-copy can set the clipboard. The Qt
clipboard is only usable from the Qt thread, so writes are queued.
"""

import logging

from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QClipboard
from PyQt6.QtWidgets import QApplication

logger = logging.getLogger(__name__)


class QtClipboardSink(QObject):
    """Callable that puts text on the clipboard and primary selection."""

    _text_signal = pyqtSignal(str)

    def __init__(self, parent: QObject = None) -> None:
        super().__init__(parent)
        self._text_signal.connect(self._set_text, Qt.ConnectionType.QueuedConnection)

    def __call__(self, text: str) -> None:
        self._text_signal.emit(text)

    def _set_text(self, text: str) -> None:
        clipboard = QApplication.clipboard()
        clipboard.setText(text, QClipboard.Mode.Clipboard)
        if clipboard.supportsSelection():
            clipboard.setText(text, QClipboard.Mode.Selection)
        logger.debug(f"Copied {len(text)} chars to the Qt clipboard")
