"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY (Junior Developer Guide) ──────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  — Static defaults checked into the repo
#   2. .env file           — Local developer overrides (not committed)
#   3. Environment vars    — Set in Docker/compose at deploy time
#
# load_config() reads the YAML file first, then deep-merges values taken
# from Settings on top.  The YAML file holds things that rarely change
# per deployment (upload allow-list, featured OCR languages); Settings
# holds connection strings and limits.
#
# The _deep_merge helper does recursive dict merging:
#   base = {"ocr": {"featured_languages": [...]}}
#   overrides = {"ocr": {"default_language": "eng"}}
#   result = {"ocr": {"featured_languages": [...], "default_language": "eng"}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to merge; a fresh one is built when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: The file is not valid YAML or not a mapping.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "mongodb": {
            "uri": settings.mongodb_uri,
            "database": settings.mongodb_db,
            "gridfs_bucket": settings.gridfs_bucket,
        },
        "storage": {
            "max_upload_size": settings.max_upload_size,
            "direct_storage_threshold": settings.direct_storage_threshold,
        },
        "ocr": {
            "default_language": settings.ocr_default_language,
            "min_confidence": settings.ocr_min_confidence,
            "tesseract_cmd": settings.tesseract_cmd,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
