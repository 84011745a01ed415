"""Promptify server configuration via environment variables."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from pydantic_settings.sources.base import PydanticBaseSettingsSource

from shared.validators import OriginListEnvSettingsSource, parse_origin_list, validate_origin


class ServerSettings(BaseSettings):
    model_config = {"env_prefix": "PROMPTIFY_"}

    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=3001, ge=1, le=65535)
    log_dir: str | None = None
    log_format: Literal["json", "console"] | None = None  # falls back to LOG_FORMAT
    cors_origins: list[str] = ["*"]
    ws_allowed_origin: str | None = None  # None accepts any origin
    persistence_timeout_seconds: float = Field(default=10.0, gt=0)
    leaderboard_default_limit: int = Field(default=50, ge=1, le=500)
    admin_sessions_limit: int = Field(default=100, ge=1, le=500)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_origin_list(v)

    @field_validator("ws_allowed_origin")
    @classmethod
    def validate_ws_allowed_origin(cls, v: str | None) -> str | None:
        if not v:
            return None
        origin = validate_origin(v)
        if origin == "*":
            return None
        return origin

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, OriginListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
