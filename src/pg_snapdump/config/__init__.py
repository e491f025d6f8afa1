"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from pg_snapdump.config import load_dump_config, DatabaseProfile, DumpConfig
"""

from pg_snapdump.config.loader import load_dump_config
from pg_snapdump.config.models import DatabaseProfile, DumpConfig, DumpSettings

__all__ = ["load_dump_config", "DatabaseProfile", "DumpConfig", "DumpSettings"]
