# chatter_client/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Client configuration, read from environment variables or a client.env file.
    """

    model_config = SettingsConfigDict(
        env_file="client.env",
        env_file_encoding="utf-8"
    )

    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8080

    ENCODING: str = "utf-8"
    RETRY_MAX_DELAY: float = 10.0

    LOG_LEVEL: str = "WARNING"


settings = Settings()
