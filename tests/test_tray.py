import os

import pytest

pytest.importorskip("PyQt6.QtWidgets")
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtWidgets import QApplication  # noqa: E402

from voicetype.app import RecordingState  # noqa: E402
from voicetype.gui.tray import SystemTray  # noqa: E402


@pytest.fixture(scope="module")
def qt_app():
    app = QApplication.instance() or QApplication([])
    yield app


def test_error_icon_survives_return_to_idle(qt_app) -> None:
    tray = SystemTray()
    tray.set_state(RecordingState.PROCESSING)

    tray.set_error_state("HTTP 500")
    tray.set_state(RecordingState.IDLE)

    assert tray.has_error is True
    assert tray.current_state == RecordingState.IDLE
    assert tray.toolTip() == "VoiceType - Error: HTTP 500"


def test_next_recording_clears_error(qt_app) -> None:
    tray = SystemTray()
    tray.set_error_state("HTTP 500")

    tray.set_state(RecordingState.RECORDING)

    assert tray.has_error is False
    assert tray.toolTip() == "VoiceType - Recording..."


def test_reload_action_emits_signal(qt_app) -> None:
    tray = SystemTray()
    requests = []
    tray.reload_settings_requested.connect(lambda: requests.append(True))

    action = next(a for a in tray.contextMenu().actions() if a.text() == "Reload settings")
    action.trigger()

    assert requests == [True]
