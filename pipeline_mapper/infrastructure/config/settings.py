"""
Unified Configuration Settings - Single Source of Truth
=======================================================
All pipeline mapper configuration using Pydantic Settings.
Each section reads its own environment prefix; the root settings object
also accepts nested variables such as ``BACKEND__BASE_URL``.
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from enum import Enum


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# === LOGGING CONFIGURATION ===

class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: LogLevel = Field(default=LogLevel.INFO)
    file_enabled: bool = Field(default=False)
    console_enabled: bool = Field(default=True)
    structured_logging: bool = Field(default=True)
    log_dir: str = Field(default="logs")
    max_file_size_mb: int = Field(default=10)
    backup_count: int = Field(default=3)

    class Config:
        env_prefix = "LOG_"


# === REMOTE EXECUTION BACKEND ===

class BackendSettings(BaseSettings):
    """Remote execution/validation service configuration"""
    base_url: str = Field(default="http://localhost:5100/api", description="Backend API root")
    timeout_seconds: float = Field(default=30.0, description="Total request timeout")
    connect_timeout_seconds: float = Field(default=5.0, description="Connection timeout")
    user_agent: str = Field(default="PipelineMapper/1.0")

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        """Only http(s) URLs; endpoints are joined with a leading slash"""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid backend URL: '{v}'. Expected an http(s) URL")
        return v.rstrip("/")

    @field_validator('timeout_seconds', 'connect_timeout_seconds')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v

    class Config:
        env_prefix = "BACKEND_"


# === EDITOR CONFIGURATION ===

class EditorSettings(BaseSettings):
    """Graph editor defaults"""
    default_version: str = Field(default="1.0.0", description="Version stamped on exported documents")
    node_id_prefix: str = Field(default="node", description="Prefix for generated node ids")

    class Config:
        env_prefix = "EDITOR_"


# === MAIN APPLICATION SETTINGS ===

class AppSettings(BaseSettings):
    """Main application settings - Single Source of Truth"""

    app_name: str = Field(default="Pipeline Mapper")
    version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    editor: EditorSettings = Field(default_factory=EditorSettings)

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"  # Allows BACKEND__BASE_URL=...
        case_sensitive = False
        extra = "ignore"
