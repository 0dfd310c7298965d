from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    # Create tables on startup (local/dev); use Alembic in production
    auto_create_tables: bool = False

    # JWT issued by the identity layer; only decoded here
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Assistant (any OpenAI-compatible chat completions endpoint)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1000
    llm_timeout_seconds: float = 30.0
    # Advertise the booking tool so the model can return structured arguments
    llm_use_tools: bool = True

    # Booking rules
    slot_step_minutes: int = 30
    # Block bookings whose duration overlaps a live appointment, not only exact start times
    booking_overlap_check: bool = True
    # Upper bound on booked slots listed in the assistant briefing
    briefing_max_booked_slots: int = 200

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def assistant_enabled(self) -> bool:
        return bool(self.llm_api_key and self.llm_base_url)


settings = Settings()
