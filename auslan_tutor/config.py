"""
config.py – Dataclass configuration loaded from YAML.

A single :class:`TutorConfig` is built once at startup and passed into each
component's constructor; nothing in the package reads ambient globals.

The API key may come from the YAML file or the ``OPENAI_API_KEY``
environment variable (the environment wins).
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".auslan_tutor" / "config.yaml"
API_KEY_ENV = "OPENAI_API_KEY"


@dataclass
class CameraConfig:
    device_id: int = 0
    width: int = 640
    height: int = 480


@dataclass
class PresenceConfig:
    sample_stride: int = 4          # pixels between samples
    alpha_threshold: int = 200
    contrast_threshold: int = 50
    skin_threshold: float = 0.02    # skin-only acceptance
    skin_with_edges: float = 0.015  # lower skin bar when edges are present
    edge_threshold: float = 0.01
    skin_weight: float = 10.0
    edge_weight: float = 5.0
    max_landmarks: int = 21


@dataclass
class CaptureConfig:
    interval_ms: int = 3000
    min_confidence: float = 0.3     # presence gate acceptance


@dataclass
class RemoteConfig:
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    practice_model: str = "gpt-4.1-2025-04-14"
    recognition_model: str = "gpt-4o"
    sentence_model: str = "gpt-4o"
    timeout: float = 30.0
    jpeg_quality: int = 80

    @property
    def has_valid_key(self) -> bool:
        return is_valid_api_key(self.api_key)


@dataclass
class StorageConfig:
    progress_path: str = str(Path.home() / ".auslan_tutor" / "progress.json")


@dataclass
class TutorConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    presence: PresenceConfig = field(default_factory=PresenceConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def is_valid_api_key(key: str | None) -> bool:
    """Cheap shape check; the remote service is the real authority."""
    return bool(key) and key.startswith("sk-") and len(key) > 20


def _dict_to_dataclass(cls, data: dict | None):
    """Convert a dict to a dataclass, ignoring unknown keys."""
    if not data:
        return cls()
    field_names = set(cls.__dataclass_fields__)
    return cls(**{k: v for k, v in data.items() if k in field_names})


def load_config(config_path: str | Path | None = None) -> TutorConfig:
    """Load configuration from *config_path* (defaults to the user config).

    A missing or unreadable file yields the defaults.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data: dict = {}

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Config %s could not be read (%s); using defaults.", path, exc)
            data = {}
        if not isinstance(data, dict):
            logger.warning("Config %s is not a mapping; using defaults.", path)
            data = {}

    config = TutorConfig(
        camera=_dict_to_dataclass(CameraConfig, data.get("camera")),
        presence=_dict_to_dataclass(PresenceConfig, data.get("presence")),
        capture=_dict_to_dataclass(CaptureConfig, data.get("capture")),
        remote=_dict_to_dataclass(RemoteConfig, data.get("remote")),
        storage=_dict_to_dataclass(StorageConfig, data.get("storage")),
    )

    env_key = os.getenv(API_KEY_ENV)
    if env_key:
        config.remote.api_key = env_key.strip()
    return config


def save_config(config: TutorConfig, config_path: str | Path | None = None) -> Path:
    """Write *config* back to YAML. Used by the explicit settings action."""
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(asdict(config), f, sort_keys=False)
    logger.info("Settings saved to %s", path)
    return path
