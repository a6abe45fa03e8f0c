from unittest.mock import Mock

import pytest
import requests

from voicetype.exceptions import TranscriptionFormatError, TranscriptionTransportError
from voicetype.transcription import (
    TranscriptionClient,
    TranscriptionErrorKind,
    TranscriptionResult,
    build_url,
)


def make_response(status_code=200, payload=None, json_error=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def wav_file(tmp_path):
    path = tmp_path / "voicetype-test.wav"
    path.write_bytes(b"RIFF\x24\x00\x00\x00WAVEfmt ")
    return path


def make_client(response=None, post_error=None, health_status=200, health_check=False):
    session = Mock(spec=requests.Session)
    if post_error is not None:
        session.post.side_effect = post_error
    else:
        session.post.return_value = response
    session.get.return_value = make_response(status_code=health_status)
    return TranscriptionClient(timeout=12.0, health_check=health_check, session=session), session


@pytest.mark.parametrize(
    "base, expected",
    [
        ("http://localhost:8675/", "http://localhost:8675/transcribe"),
        ("http://localhost:8675", "http://localhost:8675/transcribe"),
        ("  https://stt.example.org/api/ ", "https://stt.example.org/api/transcribe"),
    ],
)
def test_build_url(base, expected) -> None:
    assert build_url(base, "transcribe") == expected


def test_successful_transcription(wav_file) -> None:
    client, session = make_client(make_response(payload={"text": "  hello world \n"}))

    result = client.transcribe(wav_file, "http://localhost:8675/")

    assert result.ok is True
    assert result.text == "hello world"
    assert result.no_speech is False

    args, kwargs = session.post.call_args
    assert args[0] == "http://localhost:8675/transcribe"
    assert kwargs["files"] == {"file": ("recording.wav", wav_file.read_bytes(), "audio/wav")}
    assert kwargs["headers"] == {"Accept": "application/json"}
    assert kwargs["timeout"] == 12.0


@pytest.mark.parametrize("payload", [{}, {"text": None}, {"text": ""}, {"text": "   "}])
def test_missing_text_means_no_speech(wav_file, payload) -> None:
    client, _ = make_client(make_response(payload=payload))

    result = client.transcribe(wav_file, "http://localhost:8675")

    assert result.ok is True
    assert result.no_speech is True
    assert result.text == ""


def test_non_2xx_is_http_status_error(wav_file) -> None:
    client, _ = make_client(make_response(status_code=503, text="overloaded"))

    result = client.transcribe(wav_file, "http://localhost:8675")

    assert result.ok is False
    assert result.error_kind == TranscriptionErrorKind.HTTP_STATUS
    assert result.status_code == 503
    with pytest.raises(TranscriptionTransportError):
        result.raise_for_error()


def test_transport_failure(wav_file) -> None:
    client, _ = make_client(post_error=requests.ConnectionError("refused"))

    result = client.transcribe(wav_file, "http://localhost:8675")

    assert result.error_kind == TranscriptionErrorKind.TRANSPORT
    assert result.text is None


def test_timeout_is_a_transport_failure(wav_file) -> None:
    client, _ = make_client(post_error=requests.Timeout("slow"))

    result = client.transcribe(wav_file, "http://localhost:8675")

    assert result.error_kind == TranscriptionErrorKind.TRANSPORT


def test_malformed_json(wav_file) -> None:
    client, _ = make_client(make_response(json_error=ValueError("Expecting value")))

    result = client.transcribe(wav_file, "http://localhost:8675")

    assert result.error_kind == TranscriptionErrorKind.FORMAT
    with pytest.raises(TranscriptionFormatError):
        result.raise_for_error()


@pytest.mark.parametrize("payload", [["hello"], {"text": 42}])
def test_unexpected_json_shape(wav_file, payload) -> None:
    client, _ = make_client(make_response(payload=payload))

    result = client.transcribe(wav_file, "http://localhost:8675")

    assert result.error_kind == TranscriptionErrorKind.FORMAT


def test_unreadable_file(tmp_path) -> None:
    client, session = make_client(make_response(payload={"text": "hi"}))

    result = client.transcribe(tmp_path / "missing.wav", "http://localhost:8675")

    assert result.error_kind == TranscriptionErrorKind.FILE
    session.post.assert_not_called()


def test_health_check_blocks_upload_when_service_down(wav_file) -> None:
    client, session = make_client(
        make_response(payload={"text": "hi"}), health_status=503, health_check=True
    )

    result = client.transcribe(wav_file, "http://localhost:8675/")

    assert result.error_kind == TranscriptionErrorKind.SERVICE_UNAVAILABLE
    session.get.assert_called_once()
    assert session.get.call_args[0][0] == "http://localhost:8675/health"
    session.post.assert_not_called()


def test_health_check_passes(wav_file) -> None:
    client, session = make_client(make_response(payload={"text": "hi"}), health_check=True)

    result = client.transcribe(wav_file, "http://localhost:8675")

    assert result.text == "hi"
    session.post.assert_called_once()


def test_success_result_does_not_raise() -> None:
    TranscriptionResult.success("hello").raise_for_error()
