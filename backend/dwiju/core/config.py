from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Dwiju AI Robo"
    debug: bool = False

    # Database
    db_path: Path = Path(__file__).resolve().parent.parent.parent / "dwiju.db"
    database_url: str = ""  # overrides db_path when set, e.g. sqlite:////var/lib/dwiju/dwiju.db
    db_busy_timeout: float = 30.0

    # LLM
    llm_provider: str = "openai"  # openai | gemini
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4-turbo-preview"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    provider_timeout: float = 60.0

    # Auth
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # Chat defaults
    default_persona: str = "dwiju"
    prompt_window: int = 10
    default_temperature: float = 0.7
    default_max_tokens: int = 4000

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: list[str] = ["http://localhost:3000"]

    # Per-client limit on /api requests
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 60

    model_config = {
        "env_file": str(Path(__file__).resolve().parent.parent.parent / ".env"),
        "env_prefix": "DWIJU_",
    }

    @property
    def chat_model(self) -> str:
        return self.gemini_model if self.llm_provider == "gemini" else self.openai_model


settings = Settings()
