"""
Infrastructure Configuration - Unified Configuration System
==========================================================
Single source of truth for pipeline mapper configuration.

AppSettings is created once by the host application and passed down;
nothing in the engine reads settings through a global.
"""

from .settings import AppSettings, BackendSettings, EditorSettings, LoggingSettings, LogLevel
from .config_loader import load_app_settings_from_json, get_settings_from_working_directory

__all__ = [
    'AppSettings', 'BackendSettings', 'EditorSettings', 'LoggingSettings', 'LogLevel',
    'load_app_settings_from_json', 'get_settings_from_working_directory',
]
