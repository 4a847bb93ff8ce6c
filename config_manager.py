# config_manager.py
import json
import logging
from pathlib import Path

# --- Configuration Paths ---
DATA_DIR = Path("data")
CONFIG_PATH = DATA_DIR / "config.json"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

DEFAULT_CONFIG = {
    "min_display_resolution": 512,
    "log_level": "INFO",
    "show_other_params": True,
    "show_preview": True
}

def ensure_data_dirs(config_path=None):
    """Create the directory holding the config file if it doesn't exist."""
    path = Path(config_path) if config_path else CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

def load_config(config_path=None):
    """Loads viewer configuration, falling back to defaults for missing keys."""
    path = Path(config_path) if config_path else CONFIG_PATH
    config = dict(DEFAULT_CONFIG)
    if path.exists():
        with open(path, 'r', encoding='utf-8') as f:
            stored = json.load(f)
        # Unknown keys from older files are dropped
        config.update({k: v for k, v in stored.items() if k in DEFAULT_CONFIG})
    return config

def save_config(config, config_path=None):
    """Saves viewer configuration to a JSON file."""
    path = Path(config_path) if config_path else CONFIG_PATH
    ensure_data_dirs(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)
    return str(path.resolve())

def configure_logging(config):
    """Applies the configured log level to the root logger."""
    level = logging.getLevelName(str(config.get("log_level", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    return level
