import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent  # -> project root

# Load .env explicitly from project root
load_dotenv(BASE_DIR / ".env")


class Settings:
    PROJECT_NAME = "Health Tracker"
    API_VERSION = "2.1.0"

    DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'health_tracker.db'}")
    MAX_FETCH_LIMIT = int(os.getenv("MAX_FETCH_LIMIT", 200))
    DEFAULT_FETCH_LIMIT = int(os.getenv("DEFAULT_FETCH_LIMIT", 100))
    NOTES_MAX_LENGTH = int(os.getenv("NOTES_MAX_LENGTH", 500))
    SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "false").lower() == "true"

    # Client core
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
    REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", 10))
    SYNC_INTERVAL_MINUTES = float(os.getenv("SYNC_INTERVAL_MINUTES", 5))
    STATS_REFRESH_SECONDS = float(os.getenv("STATS_REFRESH_SECONDS", 30))
    ACHIEVEMENT_CHECK_MINUTES = float(os.getenv("ACHIEVEMENT_CHECK_MINUTES", 5))
    LOCAL_STORE_URL = os.getenv("LOCAL_STORE_URL", f"sqlite:///{BASE_DIR / 'local_store.db'}")
    LOCAL_STORE_QUOTA_BYTES = int(os.getenv("LOCAL_STORE_QUOTA_BYTES", 5 * 1024 * 1024))
    LOCAL_RECORD_LIMIT = int(os.getenv("LOCAL_RECORD_LIMIT", 100))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.getenv("LOG_FILE")

    cors_origins = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]


settings = Settings()
