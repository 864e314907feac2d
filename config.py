from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./itcook.db"  # Default to SQLite for easy local dev
    HOST: str = "0.0.0.0"
    PORT: int = 3002

    # Auth
    JWT_SECRET_KEY: str = "your-secret-key-here"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    # Realtime (WebSocket notifications)
    REALTIME_GLOBAL_CAPACITY: int = 1000
    REALTIME_CHANNEL_CAPACITY: int = 100
    REALTIME_HEARTBEAT_TIMEOUT: int = 30  # seconds without heartbeat before eviction
    REALTIME_SWEEP_INTERVAL: int = 60
    REALTIME_HEARTBEAT_INTERVAL: int = 20
    REALTIME_TARGETED_DELIVERY: bool = True
    REALTIME_MAX_CHANNELS_PER_SESSION: int = 50  # channels joined via Subscribe
    REALTIME_MAX_CHANNEL_NAME_LENGTH: int = 128

    FRIDGE_EXPIRY_WARNING_DAYS: int = 3

    # Paths
    BASE_DIR: Path = Path(__file__).resolve().parent

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

# Force loading .env from the same directory as config.py
settings = Settings(_env_file=Path(__file__).resolve().parent / ".env")
