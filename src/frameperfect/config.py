"""
FramePerfect Configuration
==========================

This module handles configuration loading for the frame curator.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    FRAMEPERFECT_ANALYSIS_BACKEND    -> analysis.backend
    FRAMEPERFECT_ENHANCEMENT_BACKEND -> enhancement.backend
    FRAMEPERFECT_MAX_FRAMES          -> sampling.max_frames
    FRAMEPERFECT_PERSISTENCE_PATH    -> persistence.path
    FRAMEPERFECT_EXPORT_DIR          -> export.output_dir
    FRAMEPERFECT_PORT                -> server.port
    FRAMEPERFECT_LOG_LEVEL           -> logging.level
    PORT                             -> server.port (Cloud Run)

The Gemini API key is never stored in settings; engines read it from
GEMINI_API_KEY or API_KEY at call time.

Example:
    from frameperfect.config import settings

    print(settings.sampling.max_frames)
    print(settings.analysis.retry.base_delay_seconds)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from frameperfect.models.filters import ScanRange


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AppConfig(BaseModel):
    """Application identification."""

    name: str = Field(default="frameperfect-curator", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class SamplingConfig(BaseModel):
    """Frame sampling configuration."""

    max_capture_width: int = Field(
        default=1280,
        ge=64,
        description="Maximum width of captured frames in pixels",
    )
    max_frames: int = Field(
        default=50,
        ge=1,
        description="Hard cap on frames captured per scan",
    )
    jpeg_quality: int = Field(
        default=85,
        ge=1,
        le=100,
        description="JPEG quality of captured frames",
    )
    default_interval: float = Field(
        default=3.0,
        ge=1,
        description="Default seconds between samples",
    )
    default_range: ScanRange = Field(
        default=ScanRange.FULL,
        description="Default portion of the video to scan",
    )


class RetryConfig(BaseModel):
    """Backoff schedule for transient capability failures."""

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    base_delay_seconds: float = Field(default=2.0, ge=0, description="First backoff delay")
    backoff_multiplier: float = Field(default=2.0, ge=1, description="Delay growth factor")


class AnalysisConfig(BaseModel):
    """Vision-analysis capability configuration."""

    backend: str = Field(
        default="mock",
        description="Analysis backend: 'mock' or 'gemini'",
    )
    model: str = Field(default="gemini-2.5-flash", description="Gemini model id")
    retry: RetryConfig = Field(default_factory=RetryConfig)


class EnhancementConfig(BaseModel):
    """Enhancement capability configuration."""

    backend: str = Field(
        default="mock",
        description="Enhancement backend: 'mock' or 'gemini'",
    )
    model: str = Field(default="gemini-2.5-flash-image", description="Gemini image model id")
    retry: RetryConfig = Field(default_factory=RetryConfig)


class GeminiConfig(BaseModel):
    """Gemini credentials lookup."""

    api_key_env: List[str] = Field(
        default_factory=lambda: ["GEMINI_API_KEY", "API_KEY"],
        description="Environment variables searched for the API key",
    )


class PersistenceConfig(BaseModel):
    """Project persistence configuration."""

    backend: str = Field(default="json", description="Persistence backend: 'json' or 'memory'")
    path: str = Field(
        default="./data/current_project.json",
        description="Project document path for the json backend",
    )


class ExportConfig(BaseModel):
    """Export configuration."""

    output_dir: str = Field(default="./exports", description="Directory for export archives")
    default_project_name: str = Field(default="My Project", description="Initial project name")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for FramePerfect.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    app: AppConfig = Field(default_factory=AppConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    enhancement: EnhancementConfig = Field(default_factory=EnhancementConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        if env_path := os.environ.get("FRAMEPERFECT_CONFIG"):
            search_paths.insert(0, Path(env_path))
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.info("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Capability backends
    if env_backend := os.environ.get("FRAMEPERFECT_ANALYSIS_BACKEND"):
        config_data.setdefault("analysis", {})["backend"] = env_backend
    if env_backend := os.environ.get("FRAMEPERFECT_ENHANCEMENT_BACKEND"):
        config_data.setdefault("enhancement", {})["backend"] = env_backend

    # Sampling
    if env_max := os.environ.get("FRAMEPERFECT_MAX_FRAMES"):
        config_data.setdefault("sampling", {})["max_frames"] = int(env_max)

    # Storage and export
    if env_path := os.environ.get("FRAMEPERFECT_PERSISTENCE_PATH"):
        config_data.setdefault("persistence", {})["path"] = env_path
    if env_dir := os.environ.get("FRAMEPERFECT_EXPORT_DIR"):
        config_data.setdefault("export", {})["output_dir"] = env_dir

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("FRAMEPERFECT_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("FRAMEPERFECT_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
