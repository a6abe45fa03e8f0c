"""
Recording controller for VoiceType.

This module provides the RecordingController, which drives one dictation
session at a time through capture, transcription and text delivery. It
implements a three-state machine and reports progress through callbacks so
the desktop shell stays a thin layer on top.

Example:
    >>> controller = RecordingController(load_config())
    >>> controller.on_transcription_ready = lambda text: print(f"Transcribed: {text}")
    >>> controller.toggle()  # start recording
    >>> # ... user speaks ...
    >>> controller.toggle()  # stop, transcribe and insert
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum, auto
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from .audio import AudioCapture, CaptureHandle, create_capture, discard_temp_file, make_temp_wav_path
from .config import VoiceTypeConfig, sample_rate_for_quality
from .exceptions import (
    CapturePipelineError,
    DependencyMissingError,
    TranscriptionError,
    VoiceTypeError,
)
from .input import (
    FocusProbe,
    InjectionMethod,
    InjectionOutcome,
    TextInjector,
    ToolRunner,
    detect_session_kind,
)
from .transcription import TranscriptionClient

logger = logging.getLogger(__name__)

APP_NAME = "VoiceType"


class RecordingState(Enum):
    """
    States of the dictation state machine.

    - IDLE: Waiting for the user to toggle recording.
    - RECORDING: Audio is being captured.
    - PROCESSING: Capture finished; transcribing and delivering the text.

    State transitions:
        IDLE -> RECORDING (toggle)
        RECORDING -> PROCESSING (toggle or time limit)
        PROCESSING -> IDLE (always, also after errors)
    """

    IDLE = auto()
    RECORDING = auto()
    PROCESSING = auto()


@dataclass
class RecordingSession:
    """
    Mutable state of the single active session.

    Reset whenever the controller returns to IDLE.
    """

    state: RecordingState = RecordingState.IDLE
    temp_file_path: Optional[Path] = None
    started_at: Optional[float] = None
    time_limit_seconds: int = 0
    handle: Optional[CaptureHandle] = None
    toggle_in_progress: bool = False
    stop_in_progress: bool = False


def _spawn_worker(job: Callable[[], None]) -> None:
    thread = threading.Thread(target=job, daemon=True, name="voicetype-processing")
    thread.start()


def _daemon_timer(interval: float, function: Callable[[], None]) -> Any:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    timer.name = "voicetype-time-limit"
    return timer


class RecordingController:
    """
    Orchestrates capture, transcription and text delivery.

    Only one session exists at a time. Every failure is logged, reported once
    through ``on_error`` and the notifier, and the machine still returns to
    IDLE with its temporary file deleted.

    Attributes:
        state: Current RecordingState.
        config: Current settings.

    Callbacks:
        on_state_changed: Signature: (old: RecordingState, new: RecordingState) -> None
        on_transcription_ready: Called with the text before it is delivered.
                               Signature: (text: str) -> None
        on_injection_outcome: Signature: (outcome: InjectionOutcome) -> None
        on_error: Signature: (error: Exception) -> None
        notifier: Desktop notification sink, only used when notifications
                  are enabled. Signature: (title: str, message: str) -> None

    Note:
        Callbacks run on whichever thread caused the event (the hotkey
        listener, the time limit timer or the processing worker). GUI
        code must marshal them to its own thread.
    """

    def __init__(
        self,
        config: VoiceTypeConfig,
        capture: Optional[AudioCapture] = None,
        client: Optional[TranscriptionClient] = None,
        injector: Optional[TextInjector] = None,
        focus_probe: Optional[FocusProbe] = None,
        dispatcher: Optional[Callable[[Callable[[], None]], None]] = None,
        timer_factory: Optional[Callable[[float, Callable[[], None]], Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Initialize the controller.

        Components that are not supplied are built from ``config``.

        Args:
            config: Validated settings.
            capture: Audio capture backend.
            client: Speech-to-text client.
            injector: Text delivery.
            focus_probe: Focused window inspection.
            dispatcher: Runs the processing job off the caller's thread.
                Defaults to a daemon worker thread.
            timer_factory: Builds the one-shot time limit timer from
                (seconds, callback). Defaults to threading.Timer.
            environ: Environment used to detect the session kind.
        """
        self._config = config
        self._owns_capture = capture is None
        self._owns_client = client is None
        self._owns_injector = injector is None

        self._capture = capture or create_capture(config.capture_backend)
        self._client = client or self._build_client(config)
        self._injector = injector or TextInjector(ToolRunner(timeout=config.tool_timeout_seconds))
        self._focus_probe = focus_probe or FocusProbe(environ=environ)
        self._dispatcher = dispatcher or _spawn_worker
        self._timer_factory = timer_factory or _daemon_timer
        self._environ = environ

        self._session = RecordingSession()
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._pending_config: Optional[VoiceTypeConfig] = None
        self._closed = False

        self.on_state_changed: Optional[Callable[[RecordingState, RecordingState], None]] = None
        self.on_transcription_ready: Optional[Callable[[str], None]] = None
        self.on_injection_outcome: Optional[Callable[[InjectionOutcome], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.notifier: Optional[Callable[[str, str], None]] = None

        logger.info(
            f"RecordingController initialized (backend={config.capture_backend}, "
            f"endpoint={config.endpoint_url})"
        )

    @staticmethod
    def _build_client(config: VoiceTypeConfig) -> TranscriptionClient:
        return TranscriptionClient(
            timeout=config.request_timeout_seconds,
            health_check=config.health_check,
        )

    @property
    def state(self) -> RecordingState:
        """Get the current state."""
        return self._session.state

    @property
    def config(self) -> VoiceTypeConfig:
        """Get the current settings."""
        return self._config

    @property
    def session(self) -> RecordingSession:
        """Get a copy of the current session."""
        with self._lock:
            return replace(self._session)

    # State handling

    def _set_state(self, new_state: RecordingState) -> None:
        """
        Transition to a new state and notify ``on_state_changed``.

        The callback runs outside the lock so it may call back into the
        controller.
        """
        with self._lock:
            old_state = self._session.state
            if old_state == new_state:
                return
            self._session.state = new_state

        logger.info(f"State transition: {old_state.name} -> {new_state.name}")
        self._invoke("on_state_changed", self.on_state_changed, old_state, new_state)

    def _invoke(self, name: str, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Error in {name} callback: {e}")

    def _notify(self, title: str, message: str) -> None:
        if not self._config.enable_notifications:
            return
        self._invoke("notifier", self.notifier, title, message)

    def _report_error(self, error: Exception) -> None:
        """Log an error and report it once to the user."""
        if isinstance(error, VoiceTypeError):
            logger.error(f"{type(error).__name__}: {error}")
        else:
            logger.exception(f"Unexpected error: {error}")

        self._notify(f"{APP_NAME} error", self._describe_error(error))
        self._invoke("on_error", self.on_error, error)

    @staticmethod
    def _describe_error(error: Exception) -> str:
        if isinstance(error, DependencyMissingError):
            return f"{error.tool} is not installed. Please install it to record audio."
        if isinstance(error, CapturePipelineError):
            return f"Recording failed: {error}"
        if isinstance(error, TranscriptionError):
            return f"Transcription failed: {error}"
        return f"Unexpected error: {error}"

    # Public operations

    def toggle(self) -> None:
        """
        Start or stop recording.

        IDLE starts a recording, RECORDING stops it and begins processing,
        and a toggle during PROCESSING is ignored.

        Example:
            >>> controller.toggle()  # IDLE -> RECORDING
            >>> controller.toggle()  # RECORDING -> PROCESSING -> IDLE
        """
        if self._closed:
            logger.debug("Controller shut down, toggle ignored")
            return

        state = self.state
        if state == RecordingState.IDLE:
            self._start()
        elif state == RecordingState.RECORDING:
            self._stop()
        else:
            logger.info("Still processing the last recording, toggle ignored")

    def shutdown(self) -> None:
        """
        Cancel any recording and release resources. Safe to call repeatedly.

        A recording in progress is discarded without being transcribed. A
        processing job already running finishes on its own and cleans up
        after itself.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            state = self._session.state
            # No processing job may start once shutdown has begun
            self._session.stop_in_progress = True
            handle = self._session.handle
            timer = self._timer
            self._timer = None

        logger.info("Shutting down RecordingController")

        if timer is not None:
            timer.cancel()

        if state == RecordingState.PROCESSING:
            return

        if state == RecordingState.RECORDING:
            try:
                self._capture.stop(handle)
            except Exception as e:
                logger.warning(f"Error stopping capture during shutdown: {e}")

        self._finish()

    def reload_config(self, config: VoiceTypeConfig) -> None:
        """
        Apply new settings.

        Applied immediately when IDLE, otherwise when the current session
        ends.
        """
        with self._lock:
            if self._session.state != RecordingState.IDLE:
                self._pending_config = config
                logger.info("Session active, new settings apply when it ends")
                return
        self._apply_config(config)

    def _apply_config(self, config: VoiceTypeConfig) -> None:
        old = self._config
        self._config = config

        if self._owns_client:
            self._client = self._build_client(config)
        if self._owns_capture and config.capture_backend != old.capture_backend:
            self._capture = create_capture(config.capture_backend)
        if self._owns_injector:
            self._injector.runner.timeout = config.tool_timeout_seconds

        logger.info("Settings applied")

    # Recording lifecycle

    def _start(self) -> None:
        with self._lock:
            if self._session.state != RecordingState.IDLE or self._session.toggle_in_progress:
                logger.debug("Start already underway, toggle ignored")
                return
            self._session.toggle_in_progress = True

        temp_path: Optional[Path] = None
        handle: Optional[CaptureHandle] = None
        try:
            missing = self._capture.missing_dependencies()
            if missing:
                raise DependencyMissingError(missing[0])

            temp_path = make_temp_wav_path()
            sample_rate = sample_rate_for_quality(self._config.recording_quality)
            limit = self._config.recording_limit_seconds

            handle = self._capture.start(sample_rate, temp_path)
            timer = self._timer_factory(limit, self._on_time_limit)

            with self._lock:
                self._session.temp_file_path = temp_path
                self._session.handle = handle
                self._session.started_at = time.time()
                self._session.time_limit_seconds = limit
                self._timer = timer

            self._set_state(RecordingState.RECORDING)
            timer.start()
            logger.info(f"Recording started ({sample_rate}Hz, limit {limit}s)")
            self._notify(APP_NAME, "Recording started")

        except Exception as e:
            if handle is not None:
                try:
                    self._capture.stop(handle)
                except Exception as stop_error:
                    logger.warning(f"Error stopping capture after failed start: {stop_error}")
            discard_temp_file(temp_path)
            with self._lock:
                self._session = RecordingSession(state=self._session.state)
                self._timer = None
            self._set_state(RecordingState.IDLE)
            self._report_error(e)

        finally:
            with self._lock:
                self._session.toggle_in_progress = False

    def _on_time_limit(self) -> None:
        if self._closed or self.state != RecordingState.RECORDING:
            return
        logger.info("Recording time limit reached")
        self._stop()

    def _stop(self) -> None:
        with self._lock:
            if (
                self._closed
                or self._session.state != RecordingState.RECORDING
                or self._session.stop_in_progress
            ):
                logger.debug("Stop already underway, request ignored")
                return
            self._session.stop_in_progress = True
            handle = self._session.handle
            temp_path = self._session.temp_file_path
            timer = self._timer
            self._timer = None

        if timer is not None:
            timer.cancel()

        self._set_state(RecordingState.PROCESSING)

        try:
            self._dispatcher(lambda: self._process(handle, temp_path))
        except Exception as e:
            self._report_error(e)
            self._finish()

    def _process(self, handle: Optional[CaptureHandle], temp_path: Optional[Path]) -> None:
        """Stop capture, transcribe and deliver the text. Always ends in IDLE."""
        config = self._config
        try:
            try:
                self._capture.stop(handle)
            finally:
                with self._lock:
                    self._session.handle = None

            if temp_path is None:
                raise CapturePipelineError("No recording file")

            result = self._client.transcribe(temp_path, config.endpoint_url)
            result.raise_for_error()

            if result.no_speech:
                logger.info("No speech detected")
                self._notify(APP_NAME, "No speech detected")
                return

            text = result.text
            self._invoke("on_transcription_ready", self.on_transcription_ready, text)

            session_kind = detect_session_kind(self._environ)
            context = self._focus_probe.current(session_kind)
            outcome = self._injector.inject(text, context, config)
            self._invoke("on_injection_outcome", self.on_injection_outcome, outcome)

            if outcome.method_used == InjectionMethod.CLIPBOARD_ONLY:
                self._notify(APP_NAME, "Text copied to clipboard")
            elif outcome.succeeded and outcome.method_used != InjectionMethod.DEBUG_LOG:
                self._notify(APP_NAME, "Text inserted")

        except Exception as e:
            self._report_error(e)

        finally:
            self._finish()

    def _finish(self) -> None:
        """Return to IDLE, deleting the temp file and clearing both guards."""
        with self._lock:
            temp_path = self._session.temp_file_path
            timer = self._timer
            self._timer = None
            self._session = RecordingSession(state=self._session.state)
            pending = self._pending_config
            self._pending_config = None

        if timer is not None:
            timer.cancel()

        discard_temp_file(temp_path)
        self._set_state(RecordingState.IDLE)

        if pending is not None:
            self._apply_config(pending)
