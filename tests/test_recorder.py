from types import SimpleNamespace

import numpy as np
import pytest

from voicetype.exceptions import CapturePipelineError

try:
    from voicetype.audio import recorder as recorder_module
except (ImportError, OSError) as e:  # sounddevice needs the PortAudio library
    pytest.skip(f"sounddevice unavailable: {e}", allow_module_level=True)

from voicetype.audio.capture import create_capture
from voicetype.audio.recorder import SoundDeviceCapture


class FakeAudioDevice:
    """Replaces sd.rec/sd.stop and sf.write; fills the buffer with one level."""

    def __init__(self, level=0.25, fail_rec=False, fail_write=False) -> None:
        self.level = level
        self.fail_rec = fail_rec
        self.fail_write = fail_write
        self.rec_calls = []
        self.stop_calls = 0
        self.writes = []

    def rec(self, frames, samplerate, channels, device, dtype, out, blocking):
        if self.fail_rec:
            raise RuntimeError("device busy")
        self.rec_calls.append((frames, samplerate, channels))
        out[:] = self.level

    def stop(self):
        self.stop_calls += 1

    def write(self, path, audio, sample_rate, subtype=None):
        if self.fail_write:
            raise RuntimeError("disk full")
        self.writes.append((path, audio.copy(), sample_rate, subtype))


@pytest.fixture
def device(monkeypatch):
    fake = FakeAudioDevice()
    monkeypatch.setattr(recorder_module.sd, "rec", fake.rec)
    monkeypatch.setattr(recorder_module.sd, "stop", fake.stop)
    monkeypatch.setattr(recorder_module.sf, "write", fake.write)
    monkeypatch.setattr(recorder_module, "time", SimpleNamespace(time=lambda: 100.5))
    return fake


def start_at(capture, path, sample_rate=8000, started_at=100.0):
    handle = capture.start(sample_rate, path)
    handle.started_at = started_at
    return handle


def test_stop_trims_buffer_to_elapsed_time(device, tmp_path) -> None:
    capture = SoundDeviceCapture()
    handle = start_at(capture, tmp_path / "out.wav")

    capture.stop(handle)

    frames, rate, channels = device.rec_calls[0]
    assert frames == SoundDeviceCapture.MAX_RECORDING_DURATION * 8000
    assert (rate, channels) == (8000, 1)

    path, audio, sample_rate, subtype = device.writes[0]
    assert path == tmp_path / "out.wav"
    assert audio.shape == (4000,)
    assert sample_rate == 8000
    assert subtype == "PCM_16"
    assert np.allclose(audio, 0.25)
    assert device.stop_calls == 1
    assert handle.stopped is True


def test_clipped_audio_is_normalized(device, tmp_path) -> None:
    device.level = 2.0
    capture = SoundDeviceCapture()

    capture.stop(start_at(capture, tmp_path / "out.wav"))

    audio = device.writes[0][1]
    assert np.isclose(np.max(np.abs(audio)), 0.95)


def test_stop_is_idempotent(device, tmp_path) -> None:
    capture = SoundDeviceCapture()
    handle = start_at(capture, tmp_path / "out.wav")

    capture.stop(handle)
    capture.stop(handle)
    capture.stop(None)

    assert device.stop_calls == 1
    assert len(device.writes) == 1


def test_second_start_while_recording_fails(device, tmp_path) -> None:
    capture = SoundDeviceCapture()
    handle = start_at(capture, tmp_path / "first.wav")

    with pytest.raises(CapturePipelineError, match="already active"):
        capture.start(8000, tmp_path / "second.wav")

    capture.stop(handle)
    capture.stop(start_at(capture, tmp_path / "third.wav"))

    assert len(device.writes) == 2


def test_device_failure_on_start(device, tmp_path) -> None:
    device.fail_rec = True
    capture = SoundDeviceCapture()

    with pytest.raises(CapturePipelineError, match="device busy"):
        capture.start(16000, tmp_path / "out.wav")

    # The failed start leaves the backend free for the next attempt
    device.fail_rec = False
    capture.stop(start_at(capture, tmp_path / "out.wav", sample_rate=16000))
    assert len(device.writes) == 1


def test_write_failure_raises_pipeline_error(device, tmp_path) -> None:
    device.fail_write = True
    capture = SoundDeviceCapture()
    handle = start_at(capture, tmp_path / "out.wav")

    with pytest.raises(CapturePipelineError, match="disk full"):
        capture.stop(handle)

    capture.stop(handle)
    assert device.stop_calls == 1


def test_missing_dependencies_reports_absent_input(monkeypatch) -> None:
    def no_input(device, kind):
        raise ValueError("No input device matching")

    monkeypatch.setattr(recorder_module.sd, "query_devices", no_input)
    assert SoundDeviceCapture().missing_dependencies() == ["audio input device"]

    monkeypatch.setattr(recorder_module.sd, "query_devices", lambda device, kind: {"name": "mic"})
    assert SoundDeviceCapture().missing_dependencies() == []


def test_create_capture_sounddevice() -> None:
    assert isinstance(create_capture("sounddevice"), SoundDeviceCapture)
