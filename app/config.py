import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./accpartner.db")
    AUTO_CREATE_SCHEMA: bool = os.getenv("AUTO_CREATE_SCHEMA", "0") == "1"
    CORS_ORIGINS: list[str] = [
        item.strip()
        for item in os.getenv("CORS_ORIGINS", "*").split(",")
        if item.strip()
    ]
    APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "UTC").strip() or "UTC"
    VERIFICATION_WINDOW_MINUTES: int = int(os.getenv("VERIFICATION_WINDOW_MINUTES", "30"))
    MAX_DEADLINE: str = os.getenv("MAX_DEADLINE", "23:30").strip()
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(1024 * 1024)))
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", str(ROOT_DIR / "uploads"))
    API_PUBLIC_URL: str = os.getenv("API_PUBLIC_URL", "http://localhost:8000").rstrip("/")
    SESSION_TTL_HOURS: int = int(os.getenv("SESSION_TTL_HOURS", "720"))
    LINK_CODE_TTL_MINUTES: int = int(os.getenv("LINK_CODE_TTL_MINUTES", "30"))
    RATE_LIMIT_MAX_REQUESTS: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
    RATE_LIMIT_WINDOW_MINUTES: int = int(os.getenv("RATE_LIMIT_WINDOW_MINUTES", "15"))
    RATE_LIMIT_BLOCK_MINUTES: int = int(os.getenv("RATE_LIMIT_BLOCK_MINUTES", "60"))
    IP_REPUTATION_THRESHOLD: int = int(os.getenv("IP_REPUTATION_THRESHOLD", "-10"))
    IP_BLOCK_HOURS: int = int(os.getenv("IP_BLOCK_HOURS", "24"))
    ADMIN_API_TOKEN: str = os.getenv("ADMIN_API_TOKEN", "").strip()
    ADMIN_TG_IDS: str = os.getenv("ADMIN_TG_IDS", "")
    BOT_TOKEN: str = os.getenv("BOT_TOKEN", "")
    TICK_SECONDS: int = int(os.getenv("TICK_SECONDS", "60"))
    SWEEP_SECONDS: int = int(os.getenv("SWEEP_SECONDS", "900"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()


settings = Settings()
