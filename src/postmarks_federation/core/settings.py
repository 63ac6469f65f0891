from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FederationSettings(BaseSettings):
    """Configuration surface for the bookmark federation service."""

    domain: Optional[str] = Field(
        default=None,
        description="Public host name of this server, without scheme (e.g. 'bookmarks.example').",
    )
    account: Optional[str] = Field(
        default=None,
        description="Username of the single local actor.",
    )
    display_name: str = Field(default="")
    description: str = Field(default="")
    avatar: str = Field(default="", description="Absolute URL of the actor avatar.")

    federation_enabled: bool = Field(default=True)
    database_url: str = Field(
        default="sqlite+pysqlite:///./.data/activitypub.db",
        description="SQLAlchemy-compatible database URL.",
    )
    rsa_key_size: int = Field(
        default=4096,
        ge=2048,
        le=8192,
        description="Modulus length of the RSA key pair generated at first setup.",
    )
    delivery_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Timeout for outbound deliveries and remote lookups in seconds.",
    )

    prometheus_port: int = Field(default=0, ge=0, le=65535)
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    model_config = SettingsConfigDict(
        env_prefix="postmarks_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_domain(self) -> "FederationSettings":
        """Rejects domains given as URLs rather than bare host names."""
        if self.domain and ("://" in self.domain or "/" in self.domain):
            raise ValueError("domain must be a bare host name, not a URL")
        return self

    @property
    def federation_disabled(self) -> bool:
        """True when federation is switched off or the actor identity is incomplete."""
        return not (self.federation_enabled and self.domain and self.account)

    @property
    def actor_name(self) -> str:
        return f"{self.account}@{self.domain}"
