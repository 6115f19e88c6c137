# chatter_server/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Manages the server's configuration settings using pydantic-settings.
    Values are read from environment variables or a server.env file.
    """

    model_config = SettingsConfigDict(
        env_file="server.env",
        env_file_encoding="utf-8"
    )

    # --- Network Settings ---
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8080

    # --- Protocol Settings ---
    ENCODING: str = "utf-8"
    # StreamReader limit; a longer line is treated as a broken connection.
    MAX_LINE_LENGTH: int = 65536
    # Seconds a peer may take to accept one fan-out line before it is dropped.
    WRITE_TIMEOUT: float = 5.0

    # --- Operator Settings ---
    # Typed on the server console to trigger an orderly shutdown.
    SHUTDOWN_COMMAND: str = "quit"
    SHUTDOWN_TIMEOUT: float = 5.0

    # --- Logging Settings ---
    LOG_LEVEL: str = "INFO"


# Single, globally accessible instance of the settings.
settings = Settings()
