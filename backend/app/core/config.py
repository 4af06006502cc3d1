from typing import Literal

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "ExamPrep AI"
    debug: bool = False
    log_level: str = "INFO"

    # Which provider the generate endpoint talks to
    llm_provider: Literal["gemini", "openai", "relay"] = "gemini"
    # Which provider the relay endpoint calls server-side
    relay_upstream_provider: Literal["gemini", "openai"] = "gemini"

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # OpenAI-compatible (OpenAI, or Groq via https://api.groq.com/openai/v1)
    openai_api_key: str = ""
    openai_base_url: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Backend relay
    relay_url: str = "http://localhost:8000/api/analyze"
    relay_timeout_s: float = 120.0

    # Generation
    generation_temperature: float = 0.2
    max_file_size_mb: int = 10
    retry_max_retries: int = 3
    retry_initial_delay_s: float = 1.0

    # CORS
    frontend_url: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()
