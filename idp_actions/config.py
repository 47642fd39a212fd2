"""Process configuration, loaded once at startup."""

from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
from types import MappingProxyType

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import UnknownEndpoint


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    idp_domain: str = Field(
        ...,
        description="Identity platform domain, e.g. my-instance.zitadel.cloud",
        validation_alias=AliasChoices("ZITADEL_DOMAIN", "IDP_DOMAIN"),
    )
    access_token: SecretStr | None = Field(
        default=None,
        description="Static bearer credential (personal access token)",
        validation_alias=AliasChoices("ZITADEL_ACCESS_TOKEN", "ACCESS_TOKEN"),
    )
    client_id: str | None = Field(default=None, validation_alias="CLIENT_ID")
    client_secret: SecretStr | None = Field(default=None, validation_alias="CLIENT_SECRET")

    signing_keys: dict[str, SecretStr] = Field(
        default_factory=dict,
        description="Endpoint name to webhook signing secret (JSON object)",
        validation_alias="SIGNING_KEYS",
    )
    signature_header: str = Field(default="ZITADEL-Signature", validation_alias="SIGNATURE_HEADER")
    claim_prefix: str = Field(default="okta_", validation_alias="CLAIM_PREFIX")
    http_timeout: float = Field(default=10.0, gt=0, validation_alias="HTTP_TIMEOUT")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", description="json or text", validation_alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @property
    def base_url(self) -> str:
        domain = self.idp_domain.strip().rstrip("/")
        if domain.startswith(("http://", "https://")):
            return domain
        return f"https://{domain}"


class SigningKeyRegistry:
    """Read-only view of the per-endpoint webhook secrets."""

    def __init__(self, keys: Mapping[str, SecretStr]) -> None:
        self._keys: Mapping[str, bytes] = MappingProxyType(
            {name: secret.get_secret_value().encode("utf-8") for name, secret in keys.items()}
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SigningKeyRegistry":
        return cls(settings.signing_keys)

    def secret_for(self, endpoint: str) -> bytes:
        try:
            return self._keys[endpoint]
        except KeyError:
            raise UnknownEndpoint(endpoint) from None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
