"""
Configuration module for the Drive wallpaper rotator.

This module centralizes the loading and validation of all configuration
parameters from environment variables. It provides a single `Settings`
class that acts as a container for all configurable values, ensuring
that they are defined in one place and can be easily imported and used
throughout the application.
"""

import os
from pathlib import Path
from typing import Literal

import openai
from PIL import Image

DEFAULT_STATE_DIR = Path("~/.drive-wallpaper")


def _clamp_percent(value: int) -> int:
    return max(0, min(100, value))


class Settings:
    """
    A container for all configuration settings, loaded from environment variables.

    This class centralizes configuration, providing default values for optional
    settings and raising errors for missing required settings.
    """

    # --- Google Drive API Configuration ---
    DRIVE_API_URL: str
    GOOGLE_TOKEN_URL: str
    GOOGLE_CLIENT_ID: str | None
    GOOGLE_CLIENT_SECRET: str | None
    GOOGLE_REFRESH_TOKEN: str | None
    DRIVE_PAGE_SIZE: int
    DRIVE_MAX_PAGES: int
    THUMBNAIL_SIZE_PX: int
    REQUEST_TIMEOUT: int

    # --- Folder Selection ---
    FOLDER_NAME: str
    FOLDER_ID: str | None

    # --- LLM Provider Configuration ---
    LLM_PROVIDER: Literal["openai", "ollama"]
    OLLAMA_BASE_URL: str | None
    OPENAI_API_KEY: str | None
    LABEL_MODEL: str
    LABEL_FALLBACK_MODEL: str
    LABEL_CONFIDENCE_THRESHOLD: float
    MAX_RETRIES: int
    MAX_RETRY_BACKOFF_SECONDS: int

    # --- Rendering ---
    TARGET_WIDTH_PX: int
    BLUR_HOME_PERCENT: int
    BLUR_LOCK_PERCENT: int

    # --- Storage ---
    STATE_PATH: Path
    OUTPUT_DIR: Path

    # --- Logging ---
    LOG_LEVEL: str
    LOG_FORMAT: Literal["console", "json"]

    def __init__(self):
        """
        Loads settings from environment variables and performs validation.
        """
        # --- Google Drive API Configuration ---
        self.DRIVE_API_URL = os.getenv(
            "DRIVE_API_URL", "https://www.googleapis.com"
        ).rstrip("/")
        self.GOOGLE_TOKEN_URL = os.getenv(
            "GOOGLE_TOKEN_URL", "https://oauth2.googleapis.com/token"
        )
        self.GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
        self.GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
        self.GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN")
        self.DRIVE_PAGE_SIZE = max(1, min(100, int(os.getenv("DRIVE_PAGE_SIZE", 100))))
        self.DRIVE_MAX_PAGES = max(1, int(os.getenv("DRIVE_MAX_PAGES", 5)))
        self.THUMBNAIL_SIZE_PX = int(os.getenv("THUMBNAIL_SIZE_PX", 480))
        self.REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", 60))

        # --- Folder Selection ---
        self.FOLDER_NAME = os.getenv("FOLDER_NAME", "Wallpapers")
        self.FOLDER_ID = os.getenv("FOLDER_ID") or None

        # --- LLM Provider Configuration ---
        self.LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")
        if self.LLM_PROVIDER not in ("openai", "ollama"):
            raise ValueError("LLM_PROVIDER must be 'openai' or 'ollama'")

        if self.LLM_PROVIDER == "ollama":
            self.OLLAMA_BASE_URL = os.getenv(
                "OLLAMA_BASE_URL", "http://localhost:11434/v1/"
            )
            self.OPENAI_API_KEY = None  # Not used for Ollama
            self.LABEL_MODEL = os.getenv("LABEL_MODEL", "gemma3:27b")
            self.LABEL_FALLBACK_MODEL = os.getenv("LABEL_FALLBACK_MODEL", "gemma3:12b")
        else:  # openai
            self.OLLAMA_BASE_URL = None
            self.OPENAI_API_KEY = self._get_required_env("OPENAI_API_KEY")
            self.LABEL_MODEL = os.getenv("LABEL_MODEL", "gpt-5-mini")
            self.LABEL_FALLBACK_MODEL = os.getenv("LABEL_FALLBACK_MODEL", "gpt-4.1-mini")

        self.LABEL_CONFIDENCE_THRESHOLD = float(
            os.getenv("LABEL_CONFIDENCE_THRESHOLD", 0.8)
        )
        self.MAX_RETRIES = int(os.getenv("MAX_RETRIES", 3))
        self.MAX_RETRY_BACKOFF_SECONDS = int(os.getenv("MAX_RETRY_BACKOFF_SECONDS", 30))

        # --- Rendering ---
        self.TARGET_WIDTH_PX = int(os.getenv("TARGET_WIDTH_PX", 1080))
        self.BLUR_HOME_PERCENT = _clamp_percent(int(os.getenv("BLUR_HOME_PERCENT", 0)))
        self.BLUR_LOCK_PERCENT = _clamp_percent(int(os.getenv("BLUR_LOCK_PERCENT", 0)))

        # --- Storage ---
        self.STATE_PATH = Path(
            os.getenv("STATE_PATH", str(DEFAULT_STATE_DIR / "state.json"))
        ).expanduser()
        self.OUTPUT_DIR = Path(
            os.getenv("OUTPUT_DIR", str(DEFAULT_STATE_DIR / "output"))
        ).expanduser()

        # --- Logging ---
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = os.getenv("LOG_FORMAT", "console")
        if self.LOG_FORMAT not in ("console", "json"):
            raise ValueError("LOG_FORMAT must be 'console' or 'json'")

    def _get_required_env(self, var_name: str) -> str:
        """
        Gets a required environment variable, raising an error if it's not set.
        """
        value = os.getenv(var_name)
        if value is None:
            raise ValueError(f"Required environment variable '{var_name}' is not set.")
        return value


def setup_libraries(settings: Settings) -> None:
    """
    Configures third-party libraries based on the application settings.
    """
    # Full-resolution photos from phones routinely exceed Pillow's default limit
    Image.MAX_IMAGE_PIXELS = None

    # Configure OpenAI SDK
    if settings.LLM_PROVIDER == "ollama":
        openai.base_url = settings.OLLAMA_BASE_URL
        openai.api_key = "dummy"
    else:
        openai.api_key = settings.OPENAI_API_KEY
