"""
Application configuration
"""

import os
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

SUPPORTED_FORMATS = ("webp", "jpeg", "png")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

DEFAULT_BROWSER_ARGS = (
    "--no-sandbox,--disable-setuid-sandbox,--disable-dev-shm-usage,--disable-gpu,"
    "--disable-extensions,--no-first-run,--no-default-browser-check,"
    "--disable-background-timer-throttling,--disable-renderer-backgrounding,"
    "--disable-backgrounding-occluded-windows"
)


def load_env_file(path: Optional[str] = None) -> bool:
    """Load a .env file into the environment without overriding variables already set."""
    return load_dotenv(path or find_dotenv(usecwd=True))


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    """Application settings"""

    def __init__(self):
        self.DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "3000"))
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Security settings - parse comma-separated values
        self.ALLOWED_HOSTS: List[str] = _split(os.getenv("ALLOWED_HOSTS", "*"))
        self.CORS_ORIGINS: List[str] = _split(os.getenv("CORS_ORIGINS", "*"))

        # Capture defaults
        self.DEFAULT_WIDTH: int = int(os.getenv("DEFAULT_WIDTH", "1200"))
        self.DEFAULT_HEIGHT: int = int(os.getenv("DEFAULT_HEIGHT", "800"))
        self.DEFAULT_QUALITY: int = int(os.getenv("DEFAULT_QUALITY", "80"))
        self.DEFAULT_NAVIGATION_TIMEOUT_MS: int = int(os.getenv("DEFAULT_NAVIGATION_TIMEOUT_MS", "30000"))
        self.CAPTURE_TIMEOUT_MS: int = int(os.getenv("CAPTURE_TIMEOUT_MS", "60000"))
        self.OUTPUT_FORMAT: str = os.getenv("OUTPUT_FORMAT", "webp").lower()

        # Browser settings
        self.BROWSER_ARGS: List[str] = _split(os.getenv("BROWSER_ARGS", DEFAULT_BROWSER_ARGS))

        # Rate limiting (express-style 15 minute window)
        self.RATE_LIMIT_WINDOW_MS: int = int(os.getenv("RATE_LIMIT_WINDOW_MS", "900000"))
        self.RATE_LIMIT_MAX_REQUESTS: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))

        # TLS material, both must be set for HTTPS
        self.SSL_CERT_PATH: str = os.getenv("SSL_CERT_PATH", "")
        self.SSL_KEY_PATH: str = os.getenv("SSL_KEY_PATH", "")

        self.validate()

    @property
    def tls_enabled(self) -> bool:
        return bool(self.SSL_CERT_PATH and self.SSL_KEY_PATH)

    def validate(self) -> None:
        """Reject configuration the capture pipeline cannot honour."""
        for name in ("DEFAULT_WIDTH", "DEFAULT_HEIGHT"):
            value = getattr(self, name)
            if not 100 <= value <= 4000:
                raise ValueError(f"{name} must be between 100 and 4000, got {value}")
        if not 1 <= self.DEFAULT_QUALITY <= 100:
            raise ValueError(f"DEFAULT_QUALITY must be between 1 and 100, got {self.DEFAULT_QUALITY}")
        if self.LOG_LEVEL not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {self.LOG_LEVEL!r}")
        if self.OUTPUT_FORMAT not in SUPPORTED_FORMATS:
            raise ValueError(
                f"OUTPUT_FORMAT must be one of {', '.join(SUPPORTED_FORMATS)}, got {self.OUTPUT_FORMAT!r}"
            )
        if self.CAPTURE_TIMEOUT_MS <= 0 or self.DEFAULT_NAVIGATION_TIMEOUT_MS <= 0:
            raise ValueError("timeouts must be positive")
        if self.DEFAULT_NAVIGATION_TIMEOUT_MS > self.CAPTURE_TIMEOUT_MS:
            raise ValueError("DEFAULT_NAVIGATION_TIMEOUT_MS must not exceed CAPTURE_TIMEOUT_MS")
        if self.RATE_LIMIT_WINDOW_MS <= 0 or self.RATE_LIMIT_MAX_REQUESTS < 1:
            raise ValueError("rate limit window and maximum must be positive")


load_env_file()
settings = Settings()
