"""Session store settings. Both URL and key must be set for the store to be used."""

from pydantic import Field
from pydantic_settings import BaseSettings


class SupabaseSettings(BaseSettings):
    model_config = {"env_prefix": "SUPABASE_"}

    # Project URL, e.g. https://abcd.supabase.co (REST API lives under /rest/v1)
    url: str = ""
    anon_key: str = Field(default="", repr=False)
    table: str = Field(default="game_sessions", min_length=1, pattern=r"^[a-z_][a-z0-9_]*$")
    timeout_seconds: float = Field(default=10.0, gt=0)

    @property
    def is_configured(self) -> bool:
        return bool(self.url.strip() and self.anon_key.strip())

    @property
    def rest_url(self) -> str:
        return f"{self.url.rstrip('/')}/rest/v1"
