"""
Configuration Loader - Bridge Between JSON Config and AppSettings
================================================================
Loads configuration from a JSON file and maps it onto AppSettings.
"""

import json
import os
import re
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .settings import AppSettings, BackendSettings, LogLevel

ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")

DEFAULT_CONFIG_PATHS = [
    "config/config.json",
    "../config/config.json",
]


def _resolve_env_vars(data: Any) -> Any:
    """Recursively resolve ${VAR} and ${VAR:-default} placeholders."""
    if isinstance(data, dict):
        return {k: _resolve_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_resolve_env_vars(i) for i in data]
    if isinstance(data, str):
        return ENV_VAR_PATTERN.sub(lambda m: os.getenv(m.group(1), m.group(2) or ""), data)
    return data


def load_app_settings_from_json(config_path: str = "config/config.json") -> AppSettings:
    """
    Load AppSettings from JSON configuration file.

    Unknown sections are ignored. A missing or unreadable file falls back to
    environment-driven defaults.

    Args:
        config_path: Path to config.json

    Returns:
        Configured AppSettings instance
    """
    settings = AppSettings()
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"[WARNING] Failed to load JSON config from {config_path}: {e}", file=sys.stderr)
        return settings

    resolved_data = _resolve_env_vars(config_data)

    if 'logging' in resolved_data:
        logging_config = resolved_data['logging']

        json_level = str(logging_config.get('level', 'INFO')).upper()
        if json_level in LogLevel.__members__:
            settings.logging.level = LogLevel[json_level]
        for key in ('file_enabled', 'console_enabled', 'structured_logging'):
            if key in logging_config:
                setattr(settings.logging, key, bool(logging_config[key]))
        if 'log_dir' in logging_config:
            settings.logging.log_dir = logging_config['log_dir']

    if 'backend' in resolved_data:
        # Re-validate through the model so bad URLs fail loudly
        merged = {**settings.backend.model_dump(), **resolved_data['backend']}
        settings.backend = BackendSettings(**merged)

    if 'editor' in resolved_data:
        editor_config = resolved_data['editor']
        if 'default_version' in editor_config:
            settings.editor.default_version = str(editor_config['default_version'])
        if 'node_id_prefix' in editor_config:
            settings.editor.node_id_prefix = str(editor_config['node_id_prefix'])

    return settings


def get_settings_from_working_directory() -> AppSettings:
    """
    Load settings from config.json relative to the current working directory.

    A .env file in the working directory is loaded first (without overriding
    variables already set) so its values can fill ${VAR} placeholders.

    Returns:
        Configured AppSettings instance
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)

    for config_path in DEFAULT_CONFIG_PATHS:
        if Path(config_path).exists():
            return load_app_settings_from_json(config_path)

    return AppSettings()
