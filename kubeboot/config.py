"""Configuration management for the kubeboot application."""
import os

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


def _home() -> str:
    return os.path.expanduser(os.getenv("KUBEBOOT_HOME", "~/.kubeboot"))


class Config:
    """Application configuration with sensible defaults."""

    # Local state
    HOME: str = _home()
    CACHE_DIR: str = os.path.expanduser(os.getenv("KUBEBOOT_CACHE_DIR", os.path.join(HOME, "cache")))
    IMAGE_CACHE_DIR: str = os.path.join(CACHE_DIR, "images")
    ADDONS_DIR: str = os.path.expanduser(os.getenv("KUBEBOOT_ADDONS_DIR", os.path.join(HOME, "addons")))

    # Timeouts (in seconds)
    DOWNLOAD_TIMEOUT: int = int(os.getenv("KUBEBOOT_DOWNLOAD_TIMEOUT", "60"))
    HEALTH_TIMEOUT: int = int(os.getenv("KUBEBOOT_HEALTH_TIMEOUT", "5"))
    SSH_TIMEOUT: int = int(os.getenv("KUBEBOOT_SSH_TIMEOUT", "30"))
    COMMAND_TIMEOUT: int = int(os.getenv("KUBEBOOT_COMMAND_TIMEOUT", "900"))  # 15 minutes

    # Concurrency
    DOWNLOAD_WORKERS: int = int(os.getenv("KUBEBOOT_DOWNLOAD_WORKERS", "2"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    LOG_FILE: str = os.getenv("KUBEBOOT_LOG_FILE", "")
    LOG_MAX_SIZE_MB: int = int(os.getenv("KUBEBOOT_LOG_MAX_SIZE_MB", "100"))
    LOG_BACKUP_COUNT: int = int(os.getenv("KUBEBOOT_LOG_BACKUP_COUNT", "5"))

    @classmethod
    def validate(cls) -> None:
        """Validate numeric settings."""
        invalid = [
            name for name in ("DOWNLOAD_TIMEOUT", "HEALTH_TIMEOUT", "SSH_TIMEOUT",
                              "COMMAND_TIMEOUT", "DOWNLOAD_WORKERS")
            if getattr(cls, name) <= 0
        ]
        if invalid:
            raise ValueError(f"Settings must be positive: {', '.join(invalid)}")
