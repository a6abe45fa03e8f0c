"""
In-process audio recording for VoiceType.

Alternative capture backend for systems without GStreamer: records with
sounddevice into a pre-allocated buffer and writes the WAV file with
soundfile when the capture is stopped.
"""

import logging
import threading
import time
from pathlib import Path
from typing import List, Optional

import numpy as np
import sounddevice as sd
import soundfile as sf

from ..config import MAX_RECORDING_LIMIT
from ..exceptions import CapturePipelineError
from .capture import CaptureHandle

logger = logging.getLogger(__name__)


class SoundDeviceCapture:
    """
    Capture backend based on sounddevice and soundfile.

    Only one capture can run at a time since sounddevice's ``rec``/``stop``
    API drives a single default stream.
    """

    # Buffer is sized for the longest allowed recording plus headroom
    MAX_RECORDING_DURATION = MAX_RECORDING_LIMIT + 5

    def __init__(self, channels: int = 1, device_index: Optional[int] = None) -> None:
        self.channels = channels
        self.device_index = device_index

        self._lock = threading.Lock()
        self._audio_buffer: Optional[np.ndarray] = None

    def missing_dependencies(self) -> List[str]:
        """Return an empty list when an input device is available."""
        try:
            sd.query_devices(self.device_index, "input")
        except Exception as e:
            logger.debug(f"No audio input device: {e}")
            return ["audio input device"]
        return []

    def start(self, sample_rate: int, output_path: Path) -> CaptureHandle:
        """
        Start non-blocking recording into the buffer.

        Raises:
            CapturePipelineError: If the audio device cannot be opened.
        """
        with self._lock:
            if self._audio_buffer is not None:
                raise CapturePipelineError("Recording already active")

            frames = int(self.MAX_RECORDING_DURATION * sample_rate)
            buffer = np.zeros((frames, self.channels), dtype=np.float32)

            try:
                sd.rec(
                    frames,
                    samplerate=sample_rate,
                    channels=self.channels,
                    device=self.device_index,
                    dtype=np.float32,
                    out=buffer,
                    blocking=False,
                )
            except Exception as e:
                raise CapturePipelineError(f"Recording failed: {e}") from e

            self._audio_buffer = buffer
            logger.info(f"Started recording (device={self.device_index}, rate={sample_rate}Hz)")
            return CaptureHandle(output_path=output_path, sample_rate=sample_rate)

    def stop(self, handle: Optional[CaptureHandle]) -> None:
        """
        Stop recording and write the captured audio to ``handle.output_path``.

        Idempotent: a None or already stopped handle is a no-op.

        Raises:
            CapturePipelineError: If the audio cannot be saved.
        """
        if handle is None or handle.stopped:
            return

        with self._lock:
            handle.stopped = True
            buffer = self._audio_buffer
            self._audio_buffer = None

            actual_duration = time.time() - handle.started_at

            # Stop the recording and wait for buffer to be fully written
            sd.stop()

            if buffer is None:
                logger.warning("No audio buffer")
                return

            actual_samples = min(int(actual_duration * handle.sample_rate), len(buffer))
            audio = buffer[:actual_samples]
            if self.channels == 1:
                audio = audio.flatten()

            if len(audio) == 0:
                logger.warning("No audio captured (0 samples)")

            max_amp = float(np.max(np.abs(audio))) if len(audio) else 0.0
            logger.info(f"Captured {actual_duration:.2f}s, max_amp={max_amp:.4f}")

            # Normalize if clipping
            if max_amp > 1.0:
                audio = audio / max_amp * 0.95

            try:
                sf.write(handle.output_path, audio, handle.sample_rate, subtype="PCM_16")
            except Exception as e:
                raise CapturePipelineError(f"Failed to save: {e}") from e

            logger.info(f"Saved to {handle.output_path}")
