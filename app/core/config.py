from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Users that bypass ownership checks (in addition to the "admin" role claim)
    PRIVILEGED_USER_IDS: List[int] = [1]

    # Row cap for table queries and per-statement deadline
    QUERY_ROW_LIMIT: int = 10
    STATEMENT_TIMEOUT_SECONDS: float = 30.0

    SQL_ECHO: bool = False

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)


# Create a single instance of the settings to use everywhere
settings = Settings()
