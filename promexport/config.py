"""Configuration models using Pydantic for validation."""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
import os


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080
    path: str = "/metrics"

    @field_validator('path')
    @classmethod
    def validate_path(cls, v):
        """The metrics path must be absolute."""
        if not v.startswith("/"):
            raise ValueError(f"Metrics path must start with '/': {v}")
        return v


class ExportConfig(BaseModel):
    """Which registry is exported and how."""
    registry: str = "default"
    source: str = "Dropwizard"
    allowed_origin: Optional[str] = None
    include_prefixes: List[str] = Field(default_factory=list)
    self_metrics: bool = True
    self_metrics_prefix: str = "promexport."


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    server: ServerConfig = Field(default_factory=ServerConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    import yaml

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    if env_origin := os.getenv('EXPORTER_ALLOWED_ORIGIN'):
        raw_config.setdefault('export', {})['allowed_origin'] = env_origin

    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    try:
        return Config(**raw_config)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
