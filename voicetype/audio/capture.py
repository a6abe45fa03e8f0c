"""
Audio capture pipeline for VoiceType.

Drives an external GStreamer pipeline that records the default PulseAudio /
PipeWire source into a WAV file. The capture layer only owns the process
handle and the temporary file; the audio graph itself belongs to GStreamer.
"""

import atexit
import logging
import os
import shutil
import signal
import subprocess
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Protocol, Set

from ..exceptions import CapturePipelineError

logger = logging.getLogger(__name__)

GST_LAUNCH = "gst-launch-1.0"

# How long to wait for gst-launch to write the WAV header after EOS
STOP_TIMEOUT_SECONDS = 5.0

# Global registry for tracking temp files so they are removed on exit
# even when a session is interrupted
_temp_file_registry: Set[Path] = set()
_temp_file_lock = threading.Lock()


def _cleanup_temp_files() -> None:
    """Remove any temp audio files still registered at interpreter exit."""
    with _temp_file_lock:
        for temp_path in list(_temp_file_registry):
            try:
                if temp_path.exists():
                    temp_path.unlink()
                    logger.debug(f"Cleaned up temp file on exit: {temp_path}")
            except OSError as e:
                logger.warning(f"Failed to clean up temp file {temp_path}: {e}")
        _temp_file_registry.clear()


atexit.register(_cleanup_temp_files)


def make_temp_wav_path(directory: Optional[Path] = None) -> Path:
    """
    Create a unique, timestamped WAV path and register it for exit cleanup.

    The file itself is not created; the capture backend writes it.

    Args:
        directory: Target directory. Defaults to the system temp directory.

    Returns:
        Path like ``/tmp/voicetype-20240101-120000-1a2b3c4d.wav``.
    """
    base = Path(directory) if directory else Path(tempfile.gettempdir())
    stamp = time.strftime("%Y%m%d-%H%M%S")
    temp_path = base / f"voicetype-{stamp}-{uuid.uuid4().hex[:8]}.wav"
    with _temp_file_lock:
        _temp_file_registry.add(temp_path)
    return temp_path


def discard_temp_file(temp_path: Optional[Path]) -> None:
    """
    Delete a session's temp file if present and drop it from the registry.

    Safe to call with None or with a path that was never written.
    """
    if temp_path is None:
        return
    try:
        if temp_path.exists():
            temp_path.unlink()
            logger.debug(f"Deleted temp audio file: {temp_path}")
    except OSError as e:
        logger.warning(f"Failed to delete temp audio file {temp_path}: {e}")
    with _temp_file_lock:
        _temp_file_registry.discard(temp_path)


def registered_temp_files() -> Set[Path]:
    """Return a snapshot of the registered temp files."""
    with _temp_file_lock:
        return set(_temp_file_registry)


@dataclass
class CaptureHandle:
    """
    A running capture.

    Attributes:
        output_path: WAV file being written.
        sample_rate: Requested sample rate in Hz.
        started_at: time.time() when capture began.
        process: Backend-specific handle (a Popen for GStreamer).
        stopped: True once stop() has completed.
    """

    output_path: Path
    sample_rate: int
    started_at: float = field(default_factory=time.time)
    process: Any = None
    stopped: bool = False


class AudioCapture(Protocol):
    """Interface consumed by the recording controller."""

    def missing_dependencies(self) -> List[str]: ...

    def start(self, sample_rate: int, output_path: Path) -> CaptureHandle: ...

    def stop(self, handle: Optional[CaptureHandle]) -> None: ...


class GStreamerCapture:
    """
    Records audio with a ``gst-launch-1.0`` subprocess.

    The pipeline is launched with ``-e`` so that SIGINT turns into an
    end-of-stream event and ``wavenc`` finalizes the file header before the
    process exits.

    Example:
        >>> capture = GStreamerCapture()
        >>> handle = capture.start(16000, make_temp_wav_path())
        >>> # ... user speaks ...
        >>> capture.stop(handle)
    """

    def __init__(
        self,
        source: str = "pulsesrc",
        stop_timeout: float = STOP_TIMEOUT_SECONDS,
    ) -> None:
        self.source = source
        self.stop_timeout = stop_timeout

    def missing_dependencies(self) -> List[str]:
        """Return the required tools that are not installed."""
        return [] if shutil.which(GST_LAUNCH) else [GST_LAUNCH]

    def build_command(self, sample_rate: int, output_path: Path) -> List[str]:
        """Build the gst-launch argument vector."""
        return [
            GST_LAUNCH, "-e",
            self.source, "!",
            "audioconvert", "!",
            "audioresample", "!",
            f"audio/x-raw,rate={sample_rate},channels=1", "!",
            "wavenc", "!",
            "filesink", f"location={output_path}",
        ]

    def start(self, sample_rate: int, output_path: Path) -> CaptureHandle:
        """
        Launch the recording pipeline.

        Raises:
            CapturePipelineError: If gst-launch is missing or exits immediately.
        """
        cmd = self.build_command(sample_rate, output_path)
        logger.debug(f"Launching capture pipeline: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CapturePipelineError(
                f"{GST_LAUNCH} not found. Please install GStreamer "
                "(e.g. sudo apt install gstreamer1.0-tools gstreamer1.0-pulseaudio)"
            ) from e
        except OSError as e:
            raise CapturePipelineError(f"Failed to start recording: {e}") from e

        # A pipeline that cannot link exits almost immediately
        try:
            returncode = process.wait(timeout=0.1)
        except subprocess.TimeoutExpired:
            returncode = None

        if returncode is not None:
            stderr = _read_stderr(process)
            raise CapturePipelineError(
                f"Recording pipeline exited with code {returncode}: {stderr or 'no output'}"
            )

        logger.info(f"Started recording (rate={sample_rate}Hz, file={output_path})")
        return CaptureHandle(
            output_path=output_path,
            sample_rate=sample_rate,
            process=process,
        )

    def stop(self, handle: Optional[CaptureHandle]) -> None:
        """
        Stop the pipeline and wait for the WAV file to be finalized.

        Idempotent: calling it with None or an already stopped handle is a no-op.

        Raises:
            CapturePipelineError: If the pipeline ended abnormally.
        """
        if handle is None or handle.stopped:
            return
        handle.stopped = True

        process = handle.process
        if process is None or process.poll() is not None:
            return

        try:
            process.send_signal(signal.SIGINT)
            process.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Capture pipeline did not stop after EOS, killing it")
            process.kill()
            process.wait()
        except ProcessLookupError:
            pass

        duration = time.time() - handle.started_at
        logger.info(f"Stopped recording after {duration:.2f}s (exit code {process.returncode})")

        failed = (
            process.returncode not in (0, -signal.SIGINT)
            and not handle.output_path.exists()
        )
        stderr = _read_stderr(process) if failed else ""
        if process.stderr is not None:
            process.stderr.close()

        if failed:
            raise CapturePipelineError(
                f"Recording pipeline failed with code {process.returncode}: "
                f"{stderr or 'no output'}"
            )


def _read_stderr(process: subprocess.Popen) -> str:
    if process.stderr is None:
        return ""
    try:
        return process.stderr.read().decode("utf-8", errors="replace").strip()
    except (OSError, ValueError):
        return ""


def create_capture(backend: str) -> AudioCapture:
    """
    Create the capture backend named in the configuration.

    Args:
        backend: "gstreamer" or "sounddevice".
    """
    if backend == "sounddevice":
        from .recorder import SoundDeviceCapture
        return SoundDeviceCapture()
    return GStreamerCapture(source=os.environ.get("VOICETYPE_GST_SOURCE", "pulsesrc"))
