from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    DB_ECHO: bool = False

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Any OpenAI-compatible chat completions provider
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: Optional[str] = None
    LLM_TEMPERATURE: float = 0.1

    # Agent limits
    SQL_ROW_LIMIT: int = 200
    HISTORY_LIMIT: int = 20
    PREVIEW_ROWS: int = 20
    SQL_MAX_RETRIES: int = 2
    SQL_COMMAND_TIMEOUT: float = 30.0
    TOOL_MAX_ROUNDS: int = 3

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create a single instance of the settings to use everywhere
settings = Settings()
