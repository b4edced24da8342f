from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./data/tripcollab.db"

    scheduler_enabled: bool = True
    summary_retry_minutes: int = 30

    # Optimistic echoes older than this are not collapsed into server rows
    optimistic_window_seconds: float = 5.0

    # Fallback date window used when a seeded plan has unparseable dates
    default_trip_offset_days: int = 30
    default_trip_length_days: int = 5

    feedback_window_days: int = 14

    ai_provider: str = "none"  # none, anthropic, openai, openai_compatible
    ai_api_key: str = ""
    ai_model: str = ""
    ai_base_url: str = ""
    ai_timeout_seconds: float = 60.0

    def model_post_init(self, __context):
        if self.env == "prod" and self.database_url.startswith("sqlite"):
            raise ValueError(
                "Production requires explicit DATABASE_URL (not SQLite)"
            )

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
