import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_ROSTER_PATH = Path(__file__).parent.parent / "data" / "legazpi_barangays.json"


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.APP_NAME = os.environ.get("APP_NAME", "Civil Registry Death Reports")
        self.ENV = os.environ.get("ENV", "development")
        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
        self.HOST = os.environ.get("HOST", "0.0.0.0")
        self.PORT = int(os.environ.get("PORT", "8000"))

        # Civil registry application serving the per-category statistics
        self.REGISTRY_API_BASE_URL = os.environ.get(
            "REGISTRY_API_BASE_URL", "http://localhost:3000"
        ).rstrip("/")

        # Resilience Configuration
        self.REQUEST_TIMEOUT_MS = int(os.environ.get("REQUEST_TIMEOUT_MS", "30000"))
        self.MAX_RETRIES = int(os.environ.get("MAX_RETRIES", "2"))
        self.RETRY_INITIAL_DELAY = float(os.environ.get("RETRY_INITIAL_DELAY", "0.5"))

        # Export Configuration
        self.EXPORT_DIR = os.environ.get("EXPORT_DIR", "exports")
        self.BARANGAY_ROSTER_PATH = os.environ.get(
            "BARANGAY_ROSTER_PATH", str(DEFAULT_ROSTER_PATH)
        )
        # count = descending annual count, alphabetical = by cause name
        self.CAUSES_SORT = os.environ.get("CAUSES_SORT", "count").lower()
        self.SHOW_ALL_BARANGAYS = os.environ.get("SHOW_ALL_BARANGAYS", "true").lower() == "true"

        self.CORS_ORIGINS = [
            origin.strip()
            for origin in os.environ.get(
                "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
            ).split(",")
            if origin.strip()
        ]

    @property
    def request_timeout_seconds(self) -> float:
        return self.REQUEST_TIMEOUT_MS / 1000.0

    def __repr__(self):
        return (
            f"Settings(APP_NAME={self.APP_NAME}, ENV={self.ENV}, "
            f"LOG_LEVEL={self.LOG_LEVEL}, REGISTRY_API_BASE_URL={self.REGISTRY_API_BASE_URL}, "
            f"EXPORT_DIR={self.EXPORT_DIR}, CAUSES_SORT={self.CAUSES_SORT}, "
            f"SHOW_ALL_BARANGAYS={self.SHOW_ALL_BARANGAYS})"
        )


settings = Settings()
