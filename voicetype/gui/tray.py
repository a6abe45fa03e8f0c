"""
System tray icon for VoiceType.

The tray icon is the only permanent UI. It shows the recording state by
colour, offers a context menu and displays desktop notifications:

- IDLE: Blue microphone
- RECORDING: Red microphone
- PROCESSING: Yellow microphone
- Error: Orange exclamation mark until the next recording starts

Controller callbacks arrive on worker threads, so ``attach()`` routes them
through queued signals to the Qt thread.

Example:
    >>> app = QApplication([])
    >>> tray = SystemTray()
    >>> tray.attach(controller)
    >>> tray.quit_requested.connect(app.quit)
    >>> tray.show()
    >>> app.exec()
"""

import logging
from typing import Dict, Optional

from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QAction, QColor, QIcon, QPainter, QPen, QPixmap
from PyQt6.QtWidgets import QMenu, QSystemTrayIcon

from ..app import APP_NAME, RecordingController, RecordingState

logger = logging.getLogger(__name__)

# GNOME palette
COLORS: Dict[str, str] = {
    "blue": "#3584e4",
    "red": "#e01b24",
    "yellow": "#f6d32d",
    "orange": "#ff7800",
    "white": "#ffffff",
}

STATE_COLORS: Dict[RecordingState, str] = {
    RecordingState.IDLE: COLORS["blue"],
    RecordingState.RECORDING: COLORS["red"],
    RecordingState.PROCESSING: COLORS["yellow"],
}

STATUS_TEXTS: Dict[RecordingState, str] = {
    RecordingState.IDLE: "Ready",
    RecordingState.RECORDING: "Recording...",
    RecordingState.PROCESSING: "Transcribing...",
}

ICON_SIZE = 32

NOTIFICATION_DURATION_MS = 3000


def _draw_badge(painter: QPainter, color: str) -> None:
    """Draw the coloured circle every icon sits on."""
    background = QColor(color)
    painter.setBrush(background)
    painter.setPen(QPen(background.darker(110), 1))
    painter.drawEllipse(1, 1, ICON_SIZE - 2, ICON_SIZE - 2)


def _microphone_icon(color: str) -> QIcon:
    pixmap = QPixmap(ICON_SIZE, ICON_SIZE)
    pixmap.fill(QColor(0, 0, 0, 0))

    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    _draw_badge(painter, color)

    white = QColor(COLORS["white"])
    painter.setBrush(white)
    painter.setPen(QPen(white, 1))

    head_w, head_h = 10, 14
    head_x = (ICON_SIZE - head_w) // 2
    head_y = 5
    painter.drawRoundedRect(head_x, head_y, head_w, head_h, 5, 5)

    center_x = ICON_SIZE // 2
    painter.setPen(QPen(white, 2))
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.drawArc(head_x - 2, head_y + head_h // 2, head_w + 4, head_h, 0, -180 * 16)
    painter.drawLine(center_x, head_y + head_h + 2, center_x, ICON_SIZE - 6)
    painter.drawLine(center_x - 4, ICON_SIZE - 6, center_x + 4, ICON_SIZE - 6)

    painter.end()
    return QIcon(pixmap)


def _error_icon() -> QIcon:
    pixmap = QPixmap(ICON_SIZE, ICON_SIZE)
    pixmap.fill(QColor(0, 0, 0, 0))

    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    _draw_badge(painter, COLORS["orange"])

    white = QColor(COLORS["white"])
    center_x = ICON_SIZE // 2
    painter.setPen(QPen(white, 3))
    painter.drawLine(center_x, 7, center_x, 18)
    painter.setBrush(white)
    painter.drawEllipse(center_x - 2, 22, 4, 4)

    painter.end()
    return QIcon(pixmap)


class SystemTray(QSystemTrayIcon):
    """
    Tray icon with state-coloured icons, a context menu and notifications.

    Signals:
        toggle_recording_requested: User chose "Start/Stop recording" or
            clicked the icon.
        show_debug_log_requested: User chose "Show debug log".
        reload_settings_requested: User chose "Reload settings".
        quit_requested: User chose "Quit".
        transcription_received: A transcript arrived (emitted on the Qt
            thread), for views such as the debug log.
    """

    toggle_recording_requested = pyqtSignal()
    show_debug_log_requested = pyqtSignal()
    reload_settings_requested = pyqtSignal()
    quit_requested = pyqtSignal()
    transcription_received = pyqtSignal(str)

    # Internal signals marshalling controller callbacks to the Qt thread
    _state_signal = pyqtSignal(object)
    _notification_signal = pyqtSignal(str, str)
    _error_signal = pyqtSignal(str)
    _transcription_signal = pyqtSignal(str)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)

        self._state = RecordingState.IDLE
        self._error_message: Optional[str] = None
        self._icons: Dict[RecordingState, QIcon] = {
            state: _microphone_icon(color) for state, color in STATE_COLORS.items()
        }
        self._error_icon = _error_icon()

        self._setup_menu()
        self.setIcon(self._icons[RecordingState.IDLE])
        self._update_tooltip()

        self.activated.connect(self._on_activated)

        queued = Qt.ConnectionType.QueuedConnection
        self._state_signal.connect(self.set_state, queued)
        self._notification_signal.connect(self.show_notification, queued)
        self._error_signal.connect(self.set_error_state, queued)
        self._transcription_signal.connect(self.transcription_received.emit, queued)

    @property
    def current_state(self) -> RecordingState:
        """Get the state currently displayed."""
        return self._state

    @property
    def has_error(self) -> bool:
        """True while the error icon is shown."""
        return self._error_message is not None

    def attach(self, controller: RecordingController) -> None:
        """
        Route a controller's callbacks to this tray.

        Callbacks may fire on any thread; each one only emits a queued signal.
        The menu toggle is connected to ``controller.toggle``.
        """
        def on_state_changed(old: RecordingState, new: RecordingState) -> None:
            self._state_signal.emit(new)

        def on_error(error: Exception) -> None:
            self._error_signal.emit(str(error))

        def on_transcription_ready(text: str) -> None:
            self._transcription_signal.emit(text)

        controller.on_state_changed = on_state_changed
        controller.on_error = on_error
        controller.on_transcription_ready = on_transcription_ready
        controller.notifier = self.post_notification

        self.toggle_recording_requested.connect(controller.toggle)

    def post_notification(self, title: str, message: str) -> None:
        """Thread-safe variant of show_notification()."""
        self._notification_signal.emit(title, message)

    def set_state(self, state: RecordingState) -> None:
        """
        Show a new recording state: icon colour, tooltip and menu text.

        A failed session ends in IDLE right after its error is reported, so
        the error icon stays until the next session leaves IDLE.

        Must be called on the Qt thread.
        """
        self._state = state
        if state != RecordingState.IDLE:
            self._error_message = None
        self._update_menu_text()
        if self.has_error:
            return
        self.setIcon(self._icons.get(state, self._icons[RecordingState.IDLE]))
        self._update_tooltip()

    def set_error_state(self, error_message: Optional[str] = None) -> None:
        """Show the error icon until the next recording starts."""
        self._error_message = error_message or ""
        self.setIcon(self._error_icon)
        if error_message:
            self.setToolTip(f"{APP_NAME} - Error: {error_message}")
        else:
            self.setToolTip(f"{APP_NAME} - Error")

    def show_notification(
        self,
        title: str,
        message: str,
        icon: QSystemTrayIcon.MessageIcon = QSystemTrayIcon.MessageIcon.Information,
        duration_ms: int = NOTIFICATION_DURATION_MS,
    ) -> None:
        """
        Display a desktop notification via the tray icon.

        Silently skipped when the tray cannot show messages.
        """
        if self.supportsMessages():
            self.showMessage(title, message, icon, duration_ms)
        else:
            logger.debug(f"Notifications unsupported, dropped: {title}: {message}")

    def _setup_menu(self) -> None:
        menu = QMenu()

        title_action = QAction(APP_NAME, menu)
        title_action.setEnabled(False)
        menu.addAction(title_action)
        menu.addSeparator()

        self._recording_action = QAction("Start recording", menu)
        self._recording_action.triggered.connect(self.toggle_recording_requested.emit)
        menu.addAction(self._recording_action)

        debug_action = QAction("Show debug log", menu)
        debug_action.triggered.connect(self.show_debug_log_requested.emit)
        menu.addAction(debug_action)

        reload_action = QAction("Reload settings", menu)
        reload_action.triggered.connect(self.reload_settings_requested.emit)
        menu.addAction(reload_action)

        menu.addSeparator()

        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit_requested.emit)
        menu.addAction(quit_action)

        # Keep a reference; the tray does not own the menu
        self._menu = menu
        self.setContextMenu(menu)

    def _update_tooltip(self) -> None:
        self.setToolTip(f"{APP_NAME} - {STATUS_TEXTS.get(self._state, 'Ready')}")

    def _update_menu_text(self) -> None:
        if self._state == RecordingState.RECORDING:
            self._recording_action.setText("Stop recording")
            self._recording_action.setEnabled(True)
        elif self._state == RecordingState.PROCESSING:
            self._recording_action.setText("Transcribing...")
            self._recording_action.setEnabled(False)
        else:
            self._recording_action.setText("Start recording")
            self._recording_action.setEnabled(True)

    def _on_activated(self, reason: QSystemTrayIcon.ActivationReason) -> None:
        if reason == QSystemTrayIcon.ActivationReason.Trigger:
            self.toggle_recording_requested.emit()
