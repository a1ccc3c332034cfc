"""Shared test fixtures for ReddiVox tests."""

import shutil
import tempfile
import threading
from pathlib import Path

import pytest
import yaml

from reddivox.adapters.local_tts_adapter import SpeechWorker
from reddivox.core.config_manager import ConfigManager, DEFAULT_CONFIG


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset all singletons after each test."""
    yield
    ConfigManager.reset()
    SpeechWorker.reset()


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def config_file(tmp_dir):
    """Create a temporary settings.yaml and return its path."""
    config_dir = tmp_dir / "config"
    config_dir.mkdir(parents=True)
    config_path = config_dir / "settings.yaml"

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(dict(DEFAULT_CONFIG), f, default_flow_style=False, sort_keys=False)

    return config_path


@pytest.fixture
def make_config(tmp_dir):
    """Build a ConfigManager rooted at tmp_dir without touching the real project."""

    def _make(config: dict = None) -> ConfigManager:
        ConfigManager.reset()
        cm = ConfigManager.__new__(ConfigManager)
        cm._initialized = True
        cm._config = ConfigManager._deep_copy(config if config is not None else DEFAULT_CONFIG)
        cm._instance_lock = threading.RLock()
        cm.PROJECT_ROOT = tmp_dir
        cm.CONFIG_PATH = tmp_dir / "config" / "settings.yaml"
        ConfigManager._instance = cm
        return cm

    return _make
