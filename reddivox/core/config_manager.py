"""Thread-safe singleton configuration manager for ReddiVox."""

import logging
import threading
from pathlib import Path
from typing import Any

import yaml

from reddivox.core.exceptions import ConfigError
from reddivox.core.types import (
    TIME_FILTERS,
    RedditCredentials,
    TtsProvider,
    VoiceSelection,
    VoiceSettings,
)

logger = logging.getLogger(__name__)

# Default configuration template
DEFAULT_CONFIG = {
    "app": {
        "version": "1.0.0",
        "log_level": "INFO",
    },
    "reddit": {
        "app_id": "",
        "app_secret": "",
        "user_agent": "desktop:reddivox:v1.0.0 (by /u/ReddiVoxApp)",
        "username": "",
        "password": "",
        "default_subreddit": "AskReddit",
        "time_filter": "day",
        "post_limit": 1,
        "comment_limit": 20,
        "comment_depth": 1,
        "request_interval_sec": 1,
        "timeout": 30,
    },
    "tts": {
        "default_provider": "local",
        "silence_ms": 200,
        "max_concurrency": 3,
        "local": {
            "voice_id": "",
            "rate": 180,
            "volume": 1.0,
        },
        "elevenlabs": {
            "api_key": "",
            "base_url": "https://api.elevenlabs.io/v1",
            "model_id": "eleven_multilingual_v2",
            "voice_id": "",
            "timeout": 60,
            "voice_settings": {
                "stability": 0.70,
                "similarity_boost": 0.70,
                "style": 0.45,
                "use_speaker_boost": True,
            },
        },
    },
    "data": {
        "output_dir": "output/audio",
    },
    "security": {
        "mask_logs": True,
    },
}

_UNIT_FLOAT_KEYS = (
    "tts.elevenlabs.voice_settings.stability",
    "tts.elevenlabs.voice_settings.similarity_boost",
    "tts.elevenlabs.voice_settings.style",
    "tts.local.volume",
)


class ConfigManager:
    """Thread-safe singleton configuration manager.

    Manages application configuration with:
    - Singleton pattern ensuring only one instance exists
    - Thread-safe operations using RLock
    - Automatic settings.yaml creation if missing
    - Dot-notation key access (e.g., "reddit.app_id")
    - Validation rules for critical settings
    """

    _instance = None
    _lock = threading.RLock()

    def __new__(cls):
        """Ensure singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize configuration manager."""
        # Prevent re-initialization
        if hasattr(self, '_initialized'):
            return

        with self._lock:
            if hasattr(self, '_initialized'):
                return

            self.PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
            self.CONFIG_PATH = self.PROJECT_ROOT / "config" / "settings.yaml"

            self._config = {}
            self._instance_lock = threading.RLock()

            self._load_or_create_config()

            self._initialized = True

    def _load_or_create_config(self):
        """Load settings.yaml or create it from defaults."""
        if self.CONFIG_PATH.exists():
            try:
                with open(self.CONFIG_PATH, 'r', encoding='utf-8') as f:
                    self._config = yaml.safe_load(f) or {}
                logger.info(f"Loaded configuration from {self.CONFIG_PATH}")
            except yaml.YAMLError as e:
                logger.error(f"Failed to parse YAML at {self.CONFIG_PATH}: {e}")
                logger.warning("Using DEFAULT_CONFIG due to parse error")
                self._config = self._deep_copy(DEFAULT_CONFIG)
            except OSError as e:
                logger.error(f"Could not read config: {e}")
                logger.warning("Using DEFAULT_CONFIG")
                self._config = self._deep_copy(DEFAULT_CONFIG)
        else:
            logger.info(f"Config file not found at {self.CONFIG_PATH}")
            self.CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
            self._config = self._deep_copy(DEFAULT_CONFIG)
            self.save()
            logger.info(f"Created default configuration at {self.CONFIG_PATH}")

    def get(self, key: str, default=None) -> Any:
        """Get configuration value using dot-notation key.

        Example:
            >>> config.get("reddit.default_subreddit")
            'AskReddit'
        """
        with self._instance_lock:
            value = self._config
            for part in key.split('.'):
                if isinstance(value, dict) and part in value:
                    value = value[part]
                else:
                    return default
            return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot-notation key.

        Note: This does NOT save to disk. Use save() to persist changes.
        """
        with self._instance_lock:
            parts = key.split('.')
            target = self._config
            for part in parts[:-1]:
                if not isinstance(target.get(part), dict):
                    target[part] = {}
                target = target[part]
            target[parts[-1]] = value

    def update(self, changes: dict) -> None:
        """Batch update configuration from flat dict of dot-notation keys.

        Applies validation rules and saves to disk once after all updates.

        Validation Rules:
            - tts.default_provider: "local" or "elevenlabs"
            - reddit.time_filter: hour/day/week/month/year/all
            - reddit.request_interval_sec: minimum 0
            - reddit.comment_depth: minimum 0
            - tts.silence_ms: 50-5000
            - voice settings and local volume: 0.0-1.0
        """
        with self._instance_lock:
            validated_changes = {}
            for key, value in changes.items():
                validated_value = self._validate_key_value(key, value)
                if validated_value is not None:
                    validated_changes[key] = validated_value

            for key, value in validated_changes.items():
                self.set(key, value)

            self.save()

    def _validate_key_value(self, key: str, value: Any) -> Any:
        """Apply validation rules to key-value pair.

        Returns:
            Validated value or None if invalid (will be ignored)
        """
        if key == "tts.default_provider":
            allowed = [p.value for p in TtsProvider]
            if value not in allowed:
                logger.warning(f"Invalid provider '{value}'. Must be one of {allowed}. Ignoring.")
                return None
            return value

        if key == "reddit.time_filter":
            if value not in TIME_FILTERS:
                logger.warning(f"Invalid time_filter '{value}'. Ignoring.")
                return None
            return value

        if key in ("reddit.request_interval_sec", "reddit.comment_depth"):
            try:
                number = int(value)
            except (TypeError, ValueError):
                logger.warning(f"Invalid {key} '{value}'. Must be int. Ignoring.")
                return None
            if number < 0:
                logger.warning(f"{key} {number} < 0. Forcing to 0.")
                return 0
            return number

        if key == "tts.silence_ms":
            try:
                silence = int(value)
            except (TypeError, ValueError):
                logger.warning(f"Invalid silence_ms '{value}'. Must be int. Ignoring.")
                return None
            clamped = min(max(silence, 50), 5000)
            if clamped != silence:
                logger.warning(f"silence_ms {silence} out of range [50, 5000]. Forcing to {clamped}.")
            return clamped

        if key in _UNIT_FLOAT_KEYS:
            try:
                number = float(value)
            except (TypeError, ValueError):
                logger.warning(f"Invalid {key} '{value}'. Must be float. Ignoring.")
                return None
            if not (0.0 <= number <= 1.0):
                logger.warning(f"{key} {number} out of range [0.0, 1.0]. Ignoring.")
                return None
            return number

        return value

    def save(self) -> None:
        """Write current configuration to settings.yaml."""
        with self._instance_lock:
            try:
                self.CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
                with open(self.CONFIG_PATH, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
                logger.debug(f"Saved configuration to {self.CONFIG_PATH}")
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to save configuration: {e}")
                raise ConfigError(f"Failed to save configuration: {e}")

    def get_output_dir(self) -> Path:
        """Absolute audio output directory (PROJECT_ROOT / data.output_dir)."""
        with self._instance_lock:
            output_dir = Path(self.get("data.output_dir", "output/audio"))
            if output_dir.is_absolute():
                return output_dir
            return self.PROJECT_ROOT / output_dir

    def get_reddit_credentials(self) -> RedditCredentials:
        return RedditCredentials(
            app_id=self.get("reddit.app_id", "") or "",
            app_secret=self.get("reddit.app_secret", "") or "",
            user_agent=self.get("reddit.user_agent", "") or "",
            username=self.get("reddit.username", "") or "",
            password=self.get("reddit.password", "") or "",
        )

    def get_voice_settings(self) -> VoiceSettings:
        defaults = VoiceSettings()
        return VoiceSettings(
            stability=float(self.get("tts.elevenlabs.voice_settings.stability", defaults.stability)),
            similarity_boost=float(self.get("tts.elevenlabs.voice_settings.similarity_boost",
                                            defaults.similarity_boost)),
            style=float(self.get("tts.elevenlabs.voice_settings.style", defaults.style)),
            use_speaker_boost=bool(self.get("tts.elevenlabs.voice_settings.use_speaker_boost",
                                            defaults.use_speaker_boost)),
        )

    def get_default_voice(self) -> VoiceSelection:
        """Voice selection for the configured default provider.

        Raises:
            ConfigError: default_provider is not a known provider
        """
        name = self.get("tts.default_provider", "local")
        try:
            provider = TtsProvider(name)
        except ValueError:
            raise ConfigError(f"Unknown TTS provider '{name}'")
        voice_id = self.get(f"tts.{provider.value}.voice_id", "") or None
        return VoiceSelection(provider=provider, voice_id=voice_id)

    @classmethod
    def reset(cls) -> None:
        """Reset singleton instance (for testing)."""
        with cls._lock:
            cls._instance = None

    @staticmethod
    def _deep_copy(obj):
        """Deep copy of nested dict/list structures."""
        if isinstance(obj, dict):
            return {k: ConfigManager._deep_copy(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [ConfigManager._deep_copy(item) for item in obj]
        else:
            return obj
