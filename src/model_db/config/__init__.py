"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from model_db.config import load_db_config, DatabaseProfile, DatabaseConfig
"""

from model_db.config.loader import default_config_path, load_db_config
from model_db.config.models import DatabaseConfig, DatabaseProfile, StoreSettings

__all__ = [
    "load_db_config",
    "default_config_path",
    "DatabaseConfig",
    "DatabaseProfile",
    "StoreSettings",
]
