"""Simple YAML configuration loader for VoiceRecorder."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "voicerecorder.yaml"
DEFAULT_UPLOAD_ENDPOINT = "https://voice-recorder-app-backend.vercel.app/upload"

DEFAULTS: Dict[str, Any] = {
    "recording": {
        "duration_seconds": 10,
        "sample_rate": 44100,
        "channels": 1,
        "chunk_size": 1024,
        "bitrate": "64k",
        "progress_interval_ms": 500,
        "ffmpeg_path": "ffmpeg",
    },
    "storage": {
        "root": None,  # None means the platform Downloads/Documents directory
        "directory_name": "VoiceRecorder",
        "overwrite": False,
        "max_age_days": 30,
    },
    "upload": {
        "endpoint": DEFAULT_UPLOAD_ENDPOINT,
        "field_name": "audio",
        "content_type": "audio/mp4",
        "timeout_seconds": 30,
    },
    "permissions": {
        "auto_grant": False,
    },
    "logging": {
        "level": "INFO",
        "file_path": None,  # None means ~/.voicerecorder/logs/voicerecorder.log
        "console_output": True,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class VoiceRecorderConfig:
    """VoiceRecorder configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, uses voicerecorder.yaml
                        from the current directory when present, otherwise the
                        built-in defaults.
        """
        if config_path is None:
            candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
            self.config_file: Optional[Path] = candidate if candidate.exists() else None
        else:
            self.config_file = Path(config_path)
            if not self.config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        if self.config_file is None:
            logger.info("No configuration file found, using defaults")
            self.config = copy.deepcopy(DEFAULTS)
        else:
            logger.info(f"Loading configuration from: {self.config_file}")
            self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        config = _deep_merge(DEFAULTS, loaded)

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        storage_root = config['storage'].get('root')
        if storage_root and not os.path.isabs(os.path.expanduser(storage_root)):
            config['storage']['root'] = str(config_dir / storage_root)

        log_path = config['logging'].get('file_path')
        if log_path and not os.path.isabs(os.path.expanduser(log_path)):
            config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'upload.endpoint').

        Args:
            key_path: Dot-separated key path (e.g., 'recording.duration_seconds')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'upload.endpoint')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        # Set the final value
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_recording_duration(self) -> float:
        """Get the fixed recording duration in seconds - CRASHES if not positive."""
        duration = self.get('recording.duration_seconds')
        try:
            duration = float(duration)
        except (TypeError, ValueError):
            raise ValueError(f"recording.duration_seconds must be a number, got: {duration!r}")
        if duration <= 0:
            raise ValueError(f"recording.duration_seconds must be positive, got: {duration}")
        return duration

    def get_upload_endpoint(self) -> str:
        """Get upload endpoint URL."""
        endpoint = self.get('upload.endpoint')
        if not endpoint or not str(endpoint).startswith(("http://", "https://")):
            raise ValueError(f"upload.endpoint must be an http(s) URL, got: {endpoint!r}")
        return str(endpoint)

    def get_storage_root(self) -> Optional[str]:
        """Get configured storage root, or None for the platform default."""
        root = self.get('storage.root')
        if not root:
            return None
        return str(Path(os.path.expanduser(root)).absolute())
