import json
import logging
import os
from typing import List

from pydantic import BaseModel, Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")


class ApiConfig(BaseModel):
    title: str = Field(default="Social Media Downloader", description="API title")
    description: str = Field(default="Download media from social platforms", description="API description")
    version: str = Field(default="1.0.0", description="API version")
    prefix: str = Field(default="/api", description="Route prefix")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")


class ExtractorConfig(BaseModel):
    candidates: List[str] = Field(
        default=[
            "yt-dlp",
            "/usr/local/bin/yt-dlp",
            "/usr/bin/yt-dlp",
            "{python} -m yt_dlp",
        ],
        description="Invocation forms probed in order; {python} expands to the running interpreter",
    )
    cache_executable: bool = Field(default=False, description="Reuse the first working candidate until it fails")
    probe_timeout: float = Field(default=5.0, gt=0, description="Version probe timeout in seconds")
    metadata_timeout: float = Field(default=30.0, gt=0, description="Metadata dump timeout in seconds")
    download_timeout: float = Field(default=300.0, gt=0, description="Download timeout in seconds")
    socket_timeout: int = Field(default=10, ge=1, description="Socket timeout for yt-dlp")
    retries: int = Field(default=3, ge=0, description="Number of retries for failed downloads")


class StorageConfig(BaseModel):
    directory: str = Field(default="downloads", description="Staging directory for downloaded files")
    max_age_seconds: float = Field(default=3600, gt=0, description="Age after which the sweep deletes a file")
    sweep_interval_seconds: float = Field(default=1800, gt=0, description="Interval between sweeps")
    post_download_grace_seconds: float = Field(default=60, ge=0, description="Delay before deleting a downloaded file")
    initial_sweep_delay_seconds: float = Field(default=5, ge=0, description="Delay before the first sweep")
    chunk_size: int = Field(default=1024 * 1024, ge=1024, description="Streaming chunk size in bytes")


class DownloadConfig(BaseModel):
    max_concurrent: int = Field(default=10, ge=1, le=100, description="Max concurrent downloads")


class SecurityConfig(BaseModel):
    enable_ssrf_protection: bool = Field(default=True, description="Enable SSRF protection")
    allow_private_ips: bool = Field(default=False, description="Allow private IP ranges")
    allow_localhost: bool = Field(default=False, description="Allow localhost access")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @validator('level')
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: list = Field(default=["en", "ja"], description="Supported locales")


class Config(BaseSettings):
    """Main configuration model"""
    model_config = SettingsConfigDict(env_prefix="SOCIALDL_", env_nested_delimiter="__")

    api: ApiConfig = Field(default_factory=ApiConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)

    @classmethod
    def load_from_file(cls, config_path: str = "config.json") -> "Config":
        """Load configuration from JSON file, environment variables fill the gaps"""
        if os.path.exists(config_path):
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)
                logger.info(f"Configuration loaded from {config_path}")
                return cls(**config_data)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load config from {config_path}: {str(e)}")
                logger.info("Using default configuration")
        else:
            logger.warning(f"Config file {config_path} not found, using defaults")

        return cls()

    def save_to_file(self, config_path: str = "config.json"):
        """Save configuration to JSON file"""
        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                json.dump(self.model_dump(), f, indent=2, ensure_ascii=False)
            logger.info(f"Configuration saved to {config_path}")
        except OSError as e:
            logger.error(f"Failed to save config to {config_path}: {str(e)}")


def load_config() -> Config:
    """Load configuration with priority: config file > env vars > defaults"""
    if os.path.exists(CONFIG_PATH):
        return Config.load_from_file(CONFIG_PATH)

    logger.info(f"Config file not found at {CONFIG_PATH}, checking environment variables")
    return Config()


config = load_config()
