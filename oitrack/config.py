# oitrack/config.py
from pydantic_settings import BaseSettings
from typing import Optional
from pydantic import Field

class Settings(BaseSettings):
    DATABASE_URL: str
    SQLALCHEMY_DATABASE_URL: Optional[str] = None
    DB_ECHO: bool = Field(False)

    LOG_LEVEL: str = Field("INFO")

    # Local OpenAI-compatible chat completion endpoint (Ollama, vLLM, ...)
    LLM_BASE_URL: str = Field("http://localhost:11434")
    LLM_MODEL: str = Field("llama3")
    LLM_TEMPERATURE: float = Field(0.3)
    LLM_MAX_TOKENS: int = Field(2048)
    LLM_TIMEOUT_SECONDS: float = Field(120.0)

    # Where HttpTaskGateway finds this service
    TASK_API_BASE_URL: str = Field("http://localhost:8000")

    PREVIOUS_ACTIVITY_LIMIT: int = Field(3)
    NOTIFICATION_PAGE_SIZE: int = Field(10)

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.SQLALCHEMY_DATABASE_URL or self.DATABASE_URL
        # Ensure asyncpg is used
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

settings = Settings()
