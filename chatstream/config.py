"""Client configuration via pydantic-settings.

Reads from environment variables and .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_ROLE = (
    "You are Ating, an emotional-logic coach and companion who helps people "
    "rebuild after personal setbacks. You are calm and analytical, you treat "
    "every emotional knot as a problem that can be taken apart and put back "
    "together, and you never hand over all your advice at once. Listen first, "
    "confirm how the user feels, then guide them step by step toward their "
    "own answer."
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Upstream flow endpoint
    chat_base_url: str = "http://localhost:8001"
    chat_path: str = "/open/flow/run/invoke"

    # Timeouts (seconds)
    request_timeout_s: float = 30.0
    stream_timeout_s: float = 300.0

    # Fixed request envelope
    chat_label: str = "roles"
    chat_session_id: str = "1-1"
    system_role: str = DEFAULT_SYSTEM_ROLE

    @property
    def chat_url(self) -> str:
        return self.chat_base_url.rstrip("/") + self.chat_path


settings = Settings()
