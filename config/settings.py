"""
Territory Risk Registry Configuration Settings

Centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Territory Risk Registry"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./risk_registry.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Bulk loading
    page_size: int = 1000  # rows per page when loading all territories

    # Classification diagnostics
    unmatched_label_cap: int = 10

    # Statistics / reports
    top_n_default: int = 10
    top_risks_limit: int = 20
    report_title: str = "Analýza rizík územia"
    export_creator: str = "SAR"
    # TTF files for the PDF report; unset means the DejaVu Sans faces bundled with matplotlib
    report_font_path: Optional[str] = None
    report_font_bold_path: Optional[str] = None

    # Identity
    admin_role: str = "admin"
    default_role: str = "user"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Score contributed by one occurrence of each tier
RISK_TIER_WEIGHTS = {
    "critical": 10,
    "high": 5,
    "medium": 2,
    "low": 1
}

# Display labels used in tables and exports
RISK_TIER_LABELS = {
    "critical": "Kritické",
    "high": "Vysoké",
    "medium": "Stredné",
    "low": "Nízke"
}

# District comparison view bounds
COMPARE_DISTRICTS_MIN = 2
COMPARE_DISTRICTS_MAX = 5

# Notification types emitted on territory writes
NOTIFICATION_TYPES = {
    "NEW_RISK": "Nové riziko pridané",
    "RISK_UPDATE": "Riziko aktualizované",
    "RISK_DELETED": "Riziko odstránené"
}
