"""
Configuration for VoiceType.

Settings live in a JSON file (``~/.config/voicetype/config.json`` unless the
``VOICETYPE_CONFIG`` environment variable points elsewhere) using the
hyphenated key names of the original extension schema, e.g.::

    {
        "endpoint-url": "http://localhost:8675",
        "recording-quality": "medium",
        "recording-limit-seconds": 60,
        "enhanced-terminal-support": true
    }

Values are validated when loaded: unknown keys are ignored, values of the
wrong type fall back to their defaults and the recording limit is clamped.
"""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "voicetype" / "config.json"

DEFAULT_ENDPOINT_URL = "http://localhost:8675"

# Recording quality -> capture sample rate in Hz
QUALITY_SAMPLE_RATES: Dict[str, int] = {
    "low": 8000,
    "medium": 16000,
    "high": 44100,
}
DEFAULT_SAMPLE_RATE = 16000

MIN_RECORDING_LIMIT = 5
MAX_RECORDING_LIMIT = 300

CAPTURE_BACKENDS = ("gstreamer", "sounddevice")


def sample_rate_for_quality(quality: Optional[str]) -> int:
    """
    Map a recording quality setting to a sample rate.

    Args:
        quality: "low", "medium" or "high" (case-insensitive).

    Returns:
        8000, 16000 or 44100. Unknown or missing values map to 16000.
    """
    if not quality:
        return DEFAULT_SAMPLE_RATE
    return QUALITY_SAMPLE_RATES.get(str(quality).strip().lower(), DEFAULT_SAMPLE_RATE)


def get_config_path() -> Path:
    """Return the config file path, honouring ``VOICETYPE_CONFIG``."""
    override = os.environ.get("VOICETYPE_CONFIG")
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_PATH


@dataclass(frozen=True)
class VoiceTypeConfig:
    """
    Validated application settings.

    Attributes:
        endpoint_url: Base URL of the speech-to-text service.
        recording_quality: "low", "medium" or "high".
        recording_limit_seconds: Automatic stop after this many seconds (5-300).
        enable_notifications: Show desktop notifications.
        enhanced_terminal_support: Enable the terminal-aware injection chain.
        debug_mode: Send text to the debug log window instead of the focused app.
        health_check: Probe ``GET /health`` before uploading.
        type_chunk_threshold: Texts shorter than this may be typed directly.
        request_timeout_seconds: Timeout for the transcription upload.
        tool_timeout_seconds: Timeout for each injection tool invocation.
        capture_backend: "gstreamer" or "sounddevice".
        hotkey: Global toggle hotkey, empty to disable.
    """

    endpoint_url: str = DEFAULT_ENDPOINT_URL
    recording_quality: str = "medium"
    recording_limit_seconds: int = 60
    enable_notifications: bool = True
    enhanced_terminal_support: bool = True
    debug_mode: bool = False
    health_check: bool = True
    type_chunk_threshold: int = 200
    request_timeout_seconds: float = 30.0
    tool_timeout_seconds: float = 5.0
    capture_backend: str = "gstreamer"
    hotkey: str = "ctrl+alt+space"

    @property
    def sample_rate(self) -> int:
        """Sample rate derived from the recording quality."""
        return sample_rate_for_quality(self.recording_quality)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoiceTypeConfig":
        """
        Build a validated config from a dictionary of hyphenated keys.

        Underscored keys are accepted too. Unknown keys are ignored.
        """
        defaults = cls()
        values: Dict[str, Any] = {}

        for field in fields(cls):
            key = field.name.replace("_", "-")
            if key in data:
                raw = data[key]
            elif field.name in data:
                raw = data[field.name]
            else:
                continue

            default = getattr(defaults, field.name)
            value = _coerce(raw, default)
            if value is None:
                logger.warning(
                    f"Ignoring invalid value for '{key}': {raw!r} "
                    f"(expected {type(default).__name__})"
                )
                continue
            values[field.name] = value

        return replace(defaults, **values).validated()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a dictionary with hyphenated keys."""
        return {
            field.name.replace("_", "-"): getattr(self, field.name)
            for field in fields(self)
        }

    def validated(self) -> "VoiceTypeConfig":
        """Return a copy with every value normalized into its allowed range."""
        endpoint = self.endpoint_url.strip() or DEFAULT_ENDPOINT_URL

        quality = self.recording_quality.strip().lower()
        if quality not in QUALITY_SAMPLE_RATES:
            logger.warning(f"Unknown recording quality '{self.recording_quality}', using 'medium'")
            quality = "medium"

        limit = min(MAX_RECORDING_LIMIT, max(MIN_RECORDING_LIMIT, self.recording_limit_seconds))
        if limit != self.recording_limit_seconds:
            logger.warning(
                f"Recording limit {self.recording_limit_seconds}s clamped to {limit}s"
            )

        backend = self.capture_backend.strip().lower()
        if backend not in CAPTURE_BACKENDS:
            logger.warning(f"Unknown capture backend '{self.capture_backend}', using 'gstreamer'")
            backend = "gstreamer"

        defaults = VoiceTypeConfig()
        request_timeout = self.request_timeout_seconds
        if request_timeout <= 0:
            request_timeout = defaults.request_timeout_seconds
        tool_timeout = self.tool_timeout_seconds
        if tool_timeout <= 0:
            tool_timeout = defaults.tool_timeout_seconds

        return replace(
            self,
            endpoint_url=endpoint,
            recording_quality=quality,
            recording_limit_seconds=limit,
            type_chunk_threshold=max(0, self.type_chunk_threshold),
            request_timeout_seconds=request_timeout,
            tool_timeout_seconds=tool_timeout,
            capture_backend=backend,
            hotkey=self.hotkey.strip().lower(),
        )


def _coerce(raw: Any, default: Any) -> Any:
    """Coerce a raw JSON value to the type of ``default``, or None if impossible."""
    if isinstance(default, bool):
        return raw if isinstance(raw, bool) else None
    if isinstance(default, int):
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float) and raw.is_integer():
            return int(raw)
        return None
    if isinstance(default, float):
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return None
        return float(raw)
    if isinstance(default, str):
        return raw if isinstance(raw, str) else None
    return None


def load_config(config_path: Optional[Path] = None) -> VoiceTypeConfig:
    """
    Load configuration from a JSON file.

    A missing file yields the defaults.

    Args:
        config_path: Path to the config file. Defaults to get_config_path().

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    path = config_path or get_config_path()

    if not path.exists():
        logger.info(f"No configuration file at {path}, using defaults")
        return VoiceTypeConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in config file: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file must contain a JSON object: {path}")

    config = VoiceTypeConfig.from_dict(loaded)
    logger.info(f"Configuration loaded from {path}")
    return config


def save_config(config: VoiceTypeConfig, config_path: Optional[Path] = None) -> None:
    """
    Save configuration to a JSON file.

    Creates the parent directory if it doesn't exist.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    path = config_path or get_config_path()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Configuration saved to {path}")
    except OSError as e:
        raise ConfigurationError(f"Failed to save config file: {e}") from e
