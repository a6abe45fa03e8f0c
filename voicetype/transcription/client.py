"""
HTTP speech-to-text client for VoiceType.

Uploads a recorded WAV file to a speech-to-text service and parses its JSON
answer. The service contract is::

    POST {endpoint}/transcribe      multipart/form-data, part "file" (audio/wav)
        2xx  {"text": "..."}        missing "text" means no speech detected
    GET  {endpoint}/health          200 when the service is ready

Every outcome, including failures, is returned as a TranscriptionResult so the
caller decides how to report it. There are no retries.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import requests

from ..exceptions import TranscriptionFormatError, TranscriptionTransportError

logger = logging.getLogger(__name__)

UPLOAD_FILENAME = "recording.wav"
UPLOAD_CONTENT_TYPE = "audio/wav"
HEALTH_TIMEOUT_SECONDS = 3.0


class TranscriptionErrorKind(Enum):
    """Why a transcription produced no text."""

    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    FORMAT = "format"
    SERVICE_UNAVAILABLE = "service_unavailable"
    FILE = "file"


@dataclass(frozen=True)
class TranscriptionResult:
    """
    Outcome of one transcription request.

    Attributes:
        text: Transcribed text; "" when no speech was detected, None on error.
        error_kind: Set when the request failed.
        status_code: HTTP status of the response, if one was received.
        detail: Human readable context for errors.
    """

    text: Optional[str] = None
    error_kind: Optional[TranscriptionErrorKind] = None
    status_code: Optional[int] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        """True when the request succeeded (including no speech)."""
        return self.error_kind is None

    @property
    def no_speech(self) -> bool:
        """True when the service answered but recognized nothing."""
        return self.ok and not self.text

    @classmethod
    def success(cls, text: str, status_code: int = 200) -> "TranscriptionResult":
        return cls(text=text, status_code=status_code)

    @classmethod
    def failure(
        cls,
        kind: TranscriptionErrorKind,
        detail: str,
        status_code: Optional[int] = None,
    ) -> "TranscriptionResult":
        return cls(error_kind=kind, status_code=status_code, detail=detail)

    def raise_for_error(self) -> None:
        """
        Raise the matching exception if this result is an error.

        Raises:
            TranscriptionFormatError: For malformed responses.
            TranscriptionTransportError: For every other failure.
        """
        if self.error_kind is None:
            return
        if self.error_kind == TranscriptionErrorKind.FORMAT:
            raise TranscriptionFormatError(self.detail, status_code=self.status_code)
        raise TranscriptionTransportError(self.detail, status_code=self.status_code)


def build_url(endpoint_base_url: str, path: str) -> str:
    """
    Join the configured base URL and an endpoint path.

    Example:
        >>> build_url("http://localhost:8675/", "transcribe")
        'http://localhost:8675/transcribe'
    """
    return f"{endpoint_base_url.strip().rstrip('/')}/{path.lstrip('/')}"


class TranscriptionClient:
    """
    Client for the speech-to-text HTTP service.

    Attributes:
        timeout: Upload timeout in seconds.
        health_check: Probe /health before uploading.

    Example:
        >>> client = TranscriptionClient()
        >>> result = client.transcribe(Path("speech.wav"), "http://localhost:8675")
        >>> if result.ok:
        ...     print(result.text)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        health_check: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.health_check = health_check
        self._session = session or requests.Session()

    def is_service_available(self, endpoint_base_url: str) -> bool:
        """Return True if ``GET /health`` answers with 200."""
        url = build_url(endpoint_base_url, "health")
        try:
            response = self._session.get(url, timeout=HEALTH_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.debug(f"Health check failed for {url}: {e}")
            return False
        logger.debug(f"Health check {url} -> {response.status_code}")
        return response.status_code == 200

    def transcribe(
        self,
        file_path: Union[str, Path],
        endpoint_base_url: str,
    ) -> TranscriptionResult:
        """
        Upload an audio file and return the transcription.

        Args:
            file_path: WAV file to upload.
            endpoint_base_url: Base URL of the service, with or without a
                trailing slash.

        Returns:
            A TranscriptionResult; never raises for network or format errors.
        """
        file_path = Path(file_path)
        url = build_url(endpoint_base_url, "transcribe")

        try:
            audio_bytes = file_path.read_bytes()
        except OSError as e:
            logger.error(f"Failed to read recording {file_path}: {e}")
            return TranscriptionResult.failure(
                TranscriptionErrorKind.FILE, f"Failed to read recording: {e}"
            )

        if self.health_check and not self.is_service_available(endpoint_base_url):
            logger.warning(f"Speech-to-text service not available at {endpoint_base_url}")
            return TranscriptionResult.failure(
                TranscriptionErrorKind.SERVICE_UNAVAILABLE,
                f"Speech-to-text service not available at {endpoint_base_url}",
            )

        logger.info(f"Uploading {len(audio_bytes)} bytes to {url}")

        try:
            response = self._session.post(
                url,
                files={"file": (UPLOAD_FILENAME, audio_bytes, UPLOAD_CONTENT_TYPE)},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Transcription request to {url} failed: {e}")
            return TranscriptionResult.failure(
                TranscriptionErrorKind.TRANSPORT, f"Request failed: {e}"
            )

        return self._parse_response(response)

    def _parse_response(self, response: requests.Response) -> TranscriptionResult:
        status = response.status_code

        if not 200 <= status < 300:
            logger.error(f"Transcription request failed with status {status}: {response.text[:200]!r}")
            return TranscriptionResult.failure(
                TranscriptionErrorKind.HTTP_STATUS,
                f"Transcription request failed (status {status})",
                status_code=status,
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON in transcription response: {e}")
            return TranscriptionResult.failure(
                TranscriptionErrorKind.FORMAT,
                f"Invalid response format: {e}",
                status_code=status,
            )

        if not isinstance(payload, dict):
            logger.error(f"Unexpected transcription response: {payload!r}")
            return TranscriptionResult.failure(
                TranscriptionErrorKind.FORMAT,
                "Invalid response format: expected a JSON object",
                status_code=status,
            )

        text = payload.get("text")
        if text is None:
            logger.info("Response has no text field, no speech detected")
            return TranscriptionResult.success("", status_code=status)

        if not isinstance(text, str):
            return TranscriptionResult.failure(
                TranscriptionErrorKind.FORMAT,
                f"Invalid response format: 'text' is {type(text).__name__}",
                status_code=status,
            )

        text = text.strip()
        logger.info(f"Transcription complete ({len(text)} chars)")
        return TranscriptionResult.success(text, status_code=status)
