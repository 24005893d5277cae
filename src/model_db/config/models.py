"""Pydantic models for store configuration."""

from pydantic import BaseModel, Field

from model_db.changes import DEFAULT_MAX_DEPTH


class DatabaseProfile(BaseModel):
    """Database connection profile from model-db.toml."""

    url: str  # SQLAlchemy URL or bare SQLite path
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class StoreSettings(BaseModel):
    """The ``[store]`` table of model-db.toml."""

    create_schema: bool = True
    max_chain_depth: int = Field(default=DEFAULT_MAX_DEPTH, gt=0)


class DatabaseConfig(BaseModel):
    """Complete configuration from model-db.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    store: StoreSettings = Field(default_factory=StoreSettings)
