"""
Debug log window for VoiceType.

A read-only view of recent transcripts. In debug mode it is where text goes
instead of being typed into the focused application.
"""

import logging
import time
from typing import Optional

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QFont
from PyQt6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QPlainTextEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..app import APP_NAME

logger = logging.getLogger(__name__)

MAX_ENTRIES = 200


class DebugLogWindow(QWidget):
    """
    Window listing transcripts with their time of arrival.

    ``append_entry`` must run on the Qt thread; ``post_entry`` may be called
    from any thread and is what the text injector uses as its debug sink.

    Example:
        >>> window = DebugLogWindow()
        >>> injector = TextInjector(debug_sink=window.post_entry)
        >>> window.show()
    """

    _entry_signal = pyqtSignal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle(f"{APP_NAME} - Debug log")
        self.resize(520, 360)

        self._entries = 0
        self._last_text = ""
        self._setup_ui()

        self._entry_signal.connect(self.append_entry, Qt.ConnectionType.QueuedConnection)

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)

        self._text_edit = QPlainTextEdit()
        self._text_edit.setReadOnly(True)
        self._text_edit.setMaximumBlockCount(MAX_ENTRIES * 4)
        self._text_edit.setPlaceholderText("No transcripts yet.")
        self._text_edit.setAccessibleName("Transcript log")

        mono_font = QFont("monospace")
        mono_font.setStyleHint(QFont.StyleHint.Monospace)
        self._text_edit.setFont(mono_font)
        layout.addWidget(self._text_edit)

        buttons = QHBoxLayout()
        buttons.addStretch()

        copy_button = QPushButton("Copy last")
        copy_button.clicked.connect(self._on_copy_clicked)
        buttons.addWidget(copy_button)

        clear_button = QPushButton("Clear")
        clear_button.clicked.connect(self.clear)
        buttons.addWidget(clear_button)

        layout.addLayout(buttons)

    @property
    def entry_count(self) -> int:
        """Number of entries shown since the last clear."""
        return self._entries

    def post_entry(self, text: str) -> None:
        """Thread-safe variant of append_entry()."""
        self._entry_signal.emit(text)

    def append_entry(self, text: str) -> None:
        """
        Append a transcript with a timestamp and scroll to it.

        Args:
            text: Transcript to show.
        """
        stamp = time.strftime("%H:%M:%S")
        self._text_edit.appendPlainText(f"[{stamp}] {text}")
        self._entries += 1
        self._last_text = text

        scrollbar = self._text_edit.verticalScrollBar()
        scrollbar.setValue(scrollbar.maximum())

    def clear(self) -> None:
        """Remove all entries."""
        self._text_edit.clear()
        self._entries = 0
        self._last_text = ""

    def _on_copy_clicked(self) -> None:
        if not self._last_text:
            return
        QApplication.clipboard().setText(self._last_text)
        logger.info(f"Copied {len(self._last_text)} chars to clipboard")

    def show_and_raise(self) -> None:
        """Show the window and bring it to the front."""
        self.show()
        self.raise_()
        self.activateWindow()
