"""
config.py

Centralized configuration management using pydantic-settings.
All modules must import settings from this file.
Direct os.getenv() calls are prohibited elsewhere.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings loaded from .env file."""

    # Database
    mysql_host: str = "127.0.0.1"
    mysql_port: int = 3306
    mysql_user: str = "glucose_alerts"
    mysql_password: str = ""
    mysql_db: str = "glucose_alerts"

    # Redis (Celery broker and result backend)
    redis_url: str = "redis://127.0.0.1:6379/0"

    # Glucose value encryption: 32-byte AES key as 64 hex characters
    encryption_key: str = ""

    # Timezones
    default_timezone: str = "UTC"
    worker_timezone: str = "UTC"

    # Email notifications
    alert_email_from: str = "alerts@localhost"
    smtp_host: str = ""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


settings = Settings()
