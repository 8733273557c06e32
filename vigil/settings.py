"""
vigil.settings
==============

Configuration settings for the Vigil application.

This module provides centralized configuration options that can be used across
the Vigil application. It includes default values that can be overridden
via environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Base directories
# ---------------------------------------------------------------------------
# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Database settings
# ---------------------------------------------------------------------------
DB_FILE = os.environ.get("VIGIL_DB_FILE", BASE_DIR / "vigil.db")
DB_URL = os.environ.get("VIGIL_DB_URL", f"sqlite:///{DB_FILE}")
DB_ECHO = os.environ.get("VIGIL_DB_ECHO", "False").lower() == "true"

# API settings
# ---------------------------------------------------------------------------
API_HOST = os.environ.get("VIGIL_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("VIGIL_API_PORT", "8000"))
API_DEBUG = os.environ.get("VIGIL_API_DEBUG", "False").lower() == "true"

# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.environ.get("VIGIL_LOG_LEVEL", "INFO").upper()


# ---------------------------------------------------------------------------
# Pydantic settings model for engine tuning and integrations
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Pydantic model for application settings, loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VIGIL_",  # e.g. VIGIL_NEAR_DUE_DAYS=14
        env_file=".env",  # load from .env file if present
        case_sensitive=False,  # case-insensitive environment variables
        extra="ignore",
    )

    # Listings and alerts
    page_size: int = Field(10, ge=1, description="Default page size for record listings")
    near_due_days: int = Field(7, ge=0, description="Window for near-due alerts, in days")
    dashboard_alert_limit: int = Field(5, ge=1, description="Alerts shown on the dashboard banner")

    # Lifecycle
    remind_throttle_hours: int = Field(24, ge=0, description="Minimum gap between two reminders")
    start_progress: int = Field(5, ge=1, le=100, description="Progress recorded when an induction starts")

    # Reminder delivery
    reminder_webhook_url: Optional[HttpUrl] = Field(
        None, description="Endpoint receiving reminder POSTs; reminders are only logged when unset"
    )
    reminder_timeout: float = Field(10.0, gt=0, description="Webhook timeout in seconds")

    log_level: str = Field(LOG_LEVEL, description="Root logging level")


# Initialize settings
settings = Settings()
