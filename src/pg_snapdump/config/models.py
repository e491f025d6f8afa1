"""Pydantic models for snapdump.toml."""

from pydantic import BaseModel, Field

from pg_snapdump.dump.models import DumpSettings


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from snapdump.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class DumpConfig(BaseModel):
    """Complete configuration from snapdump.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    dump: DumpSettings = Field(default_factory=DumpSettings)


__all__ = ["DatabaseProfile", "DumpConfig", "DumpSettings"]
