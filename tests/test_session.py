import subprocess
from types import SimpleNamespace

import pytest

from voicetype.input import session as session_module
from voicetype.input.session import SessionKind, ToolRunner, detect_session_kind


@pytest.mark.parametrize(
    "environ, expected",
    [
        ({"XDG_SESSION_TYPE": "wayland"}, SessionKind.WAYLAND),
        ({"XDG_SESSION_TYPE": "X11", "WAYLAND_DISPLAY": "wayland-0"}, SessionKind.X11),
        ({"WAYLAND_DISPLAY": "wayland-0"}, SessionKind.WAYLAND),
        ({"XDG_SESSION_TYPE": "tty"}, SessionKind.X11),
        ({}, SessionKind.X11),
    ],
)
def test_detect_session_kind(environ, expected) -> None:
    assert detect_session_kind(environ) == expected


class RecordingRun:
    def __init__(self, returncode=0, stdout="", stderr=b"", error=None) -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.error = error
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(returncode=self.returncode, stdout=self.stdout, stderr=self.stderr)


def test_run_success_passes_text_on_stdin(monkeypatch) -> None:
    fake = RecordingRun()
    monkeypatch.setattr(session_module.subprocess, "run", fake)

    assert ToolRunner(timeout=3.0).run(["wl-copy"], input_text="héllo", detach=True) is True

    cmd, kwargs = fake.calls[0]
    assert cmd == ["wl-copy"]
    assert kwargs["input"] == "héllo".encode("utf-8")
    assert kwargs["stdin"] is None
    assert kwargs["stderr"] == subprocess.DEVNULL
    assert kwargs["timeout"] == 3.0


def test_run_without_input_closes_stdin(monkeypatch) -> None:
    fake = RecordingRun()
    monkeypatch.setattr(session_module.subprocess, "run", fake)

    ToolRunner().run(["xdotool", "click", "2"], timeout=1.5)

    _, kwargs = fake.calls[0]
    assert kwargs["input"] is None
    assert kwargs["stdin"] == subprocess.DEVNULL
    assert kwargs["stderr"] == subprocess.PIPE
    assert kwargs["timeout"] == 1.5


@pytest.mark.parametrize(
    "fake",
    [
        RecordingRun(returncode=1, stderr=b"ydotoold is not running"),
        RecordingRun(error=FileNotFoundError("xdotool")),
        RecordingRun(error=subprocess.TimeoutExpired("xdotool", 5)),
        RecordingRun(error=PermissionError("denied")),
    ],
)
def test_run_failures_return_false(monkeypatch, fake) -> None:
    monkeypatch.setattr(session_module.subprocess, "run", fake)

    assert ToolRunner().run(["xdotool", "key", "ctrl+v"]) is False


def test_output_returns_stdout(monkeypatch) -> None:
    monkeypatch.setattr(session_module.subprocess, "run", RecordingRun(stdout="12345\n"))

    assert ToolRunner().output(["xdotool", "getactivewindow"]) == "12345\n"


def test_output_returns_none_on_failure(monkeypatch) -> None:
    monkeypatch.setattr(session_module.subprocess, "run", RecordingRun(returncode=1))
    assert ToolRunner().output(["xdotool", "getactivewindow"]) is None

    monkeypatch.setattr(session_module.subprocess, "run", RecordingRun(error=FileNotFoundError()))
    assert ToolRunner().output(["hyprctl", "activewindow", "-j"]) is None
