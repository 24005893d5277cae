"""Adapter factory.

Resolves which database to open and returns a ready ``SqlAlchemyAdapter``.

Resolution priority:
1. An explicit ``url`` argument (e.g. the CLI's ``--db``)
2. An explicit ``profile_name`` argument, looked up in model-db.toml
3. ``MODEL_DB_PROFILE`` env var, looked up in model-db.toml
4. ``MODEL_DB`` env var (path or URL)
5. ``model.db`` in the working directory

Usage:
    from model_db.factory import get_adapter

    adapter = get_adapter()                 # model.db, schema created
    adapter = get_adapter("shared")         # profile from model-db.toml
    adapter = get_adapter(url=":memory:")   # explicit location
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from model_db.adapters import SqlAlchemyAdapter
from model_db.config import DatabaseProfile, StoreSettings, default_config_path, load_db_config
from model_db.errors import ModelDbError
from model_db.schema.comparator import validate_registry
from model_db.schema.ddl import create_schema
from model_db.schema.introspector import SchemaIntrospector
from model_db.schema.models import SchemaValidationResult

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "model.db"


class ProfileNotFoundError(ModelDbError):
    """Raised when a named profile is absent from model-db.toml."""

    pass


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_active_profile_name(profile_name: str | None = None) -> str | None:
    """Explicit profile name, else ``MODEL_DB_PROFILE``, else ``None``."""
    return profile_name or os.environ.get("MODEL_DB_PROFILE") or None


def get_profile(profile_name: str, config_path: Path | None = None) -> DatabaseProfile:
    """Look up a profile in model-db.toml.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ProfileNotFoundError: If the profile is not defined.
    """
    config = load_db_config(config_path)
    if profile_name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in {config_path or default_config_path()}. "
            f"Available profiles: {available}"
        )
    return config.profiles[profile_name]


def get_store_settings(config_path: Path | None = None) -> StoreSettings:
    """``[store]`` settings from model-db.toml, or defaults when there is no file."""
    path = config_path or default_config_path()
    if not path.exists():
        return StoreSettings()
    return load_db_config(path).store


def resolve_database_url(
    profile_name: str | None = None,
    url: str | None = None,
    config_path: Path | None = None,
) -> str:
    """Work out which database to open, following the module's priority order."""
    if url:
        return url

    active = get_active_profile_name(profile_name)
    if active:
        return resolve_url(get_profile(active, config_path))

    return os.environ.get("MODEL_DB") or DEFAULT_DATABASE


def get_adapter(
    profile_name: str | None = None,
    url: str | None = None,
    config_path: Path | None = None,
    create: bool | None = None,
) -> SqlAlchemyAdapter:
    """Open the configured database.

    Args:
        profile_name: Profile from model-db.toml.
        url: Explicit URL or SQLite path; overrides any profile.
        config_path: Alternative config file.
        create: Apply the DDL idempotently.  ``None`` follows
            ``[store] create_schema`` (default ``True``).

    Returns:
        A ``SqlAlchemyAdapter``; the caller owns it and must ``close()`` it.

    Raises:
        ProfileNotFoundError: If a named profile is not configured.
    """
    database_url = resolve_database_url(profile_name, url, config_path)
    adapter = SqlAlchemyAdapter(database_url)

    if create is None:
        create = get_store_settings(config_path).create_schema
    if create:
        create_schema(adapter)

    logger.debug("Opened %s", adapter.url)
    return adapter


def connect_and_validate(adapter: SqlAlchemyAdapter) -> SchemaValidationResult:
    """Compare the registry with the adapter's live tables."""
    with SchemaIntrospector(adapter.engine) as introspector:
        actual_columns = introspector.get_column_names()
    return validate_registry(actual_columns)
