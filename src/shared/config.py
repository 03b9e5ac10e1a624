"""Configuration management for the KYC MCP server.

Supports an optional YAML configuration file with environment variable
overrides. Configuration is loaded once and cached.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MCPServerSettings(BaseSettings):
    """HTTP server configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    enable_audit: bool = Field(default=True)
    audit_log_path: str = Field(default="logs/audit.log")
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore"
    )


class DataverseSettings(BaseSettings):
    """Record store (Dataverse) and its identity provider."""
    url: Optional[str] = Field(default=None, description="Environment URL, e.g. https://org.crm.dynamics.com")
    client_id: Optional[str] = Field(default=None)
    client_secret: Optional[str] = Field(default=None)
    tenant_id: Optional[str] = Field(default=None)
    authority: str = Field(default="https://login.microsoftonline.com")
    api_version: str = Field(default="v9.2")
    token_safety_margin_seconds: float = Field(default=300, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="DATAVERSE_",
        env_file=".env",
        extra="ignore"
    )

    @property
    def configured(self) -> bool:
        return bool(self.url and self.client_id and self.client_secret and self.tenant_id)


class DocumentIntelligenceSettings(BaseSettings):
    """Document analysis provider (Azure Document Intelligence)."""
    endpoint: Optional[str] = Field(default=None)
    key: Optional[str] = Field(default=None)
    model_id: str = Field(default="prebuilt-read")
    api_version: str = Field(default="2024-11-30")
    poll_interval_seconds: float = Field(default=1.0, ge=0)
    max_poll_attempts: int = Field(default=30, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="DOC_INTELLIGENCE_",
        env_file=".env",
        extra="ignore"
    )

    @property
    def configured(self) -> bool:
        return bool(self.endpoint and self.key)


class ScreeningSettings(BaseSettings):
    """Adverse media screening provider (Perplexity)."""
    api_key: Optional[str] = Field(default=None)
    base_url: str = Field(default="https://api.perplexity.ai")
    model: str = Field(default="sonar")
    temperature: float = Field(default=0.1, ge=0, le=2)

    model_config = SettingsConfigDict(
        env_prefix="PERPLEXITY_",
        env_file=".env",
        extra="ignore"
    )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


class GleifSettings(BaseSettings):
    """Public LEI registry (GLEIF)."""
    base_url: str = Field(default="https://api.gleif.org/api/v1")

    model_config = SettingsConfigDict(
        env_prefix="GLEIF_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    api_key: Optional[str] = Field(default=None, description="Shared secret required from clients")

    # Component settings
    server: MCPServerSettings = Field(default_factory=MCPServerSettings)
    dataverse: DataverseSettings = Field(default_factory=DataverseSettings)
    document_intelligence: DocumentIntelligenceSettings = Field(
        default_factory=DocumentIntelligenceSettings
    )
    screening: ScreeningSettings = Field(default_factory=ScreeningSettings)
    gleif: GleifSettings = Field(default_factory=GleifSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @property
    def secured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        return cls(**load_yaml_config(path))


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
