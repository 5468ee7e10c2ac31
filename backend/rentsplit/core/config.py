from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Comma-separated so several provider keys can be rotated
    llm_api_keys: str = Field(
        default="",
        validation_alias=AliasChoices('llm_api_keys', 'llm_api_key', 'model_api_key'),
    )
    llm_model_name: str = Field(
        default="openrouter/meta-llama/llama-3.3-8b-instruct:free",
        validation_alias=AliasChoices('llm_model_name', 'model_name'),
    )
    llm_max_tokens: int = 1000
    llm_temperature: float = 0.7
    # How a key is picked when several are configured
    llm_key_strategy: Literal["round_robin", "least_recently_used"] = "round_robin"
    cors_origins: str = "http://localhost:3000"

    rate_limit_requests: int = 20
    rate_limit_window_seconds: int = 60
    token_budget_per_minute: int = 6000
    share_store_max_entries: int = 10000

    log_level: str = "INFO"

    @property
    def api_keys(self) -> list[str]:
        return [k.strip() for k in self.llm_api_keys.split(",") if k.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
