"""Snapshot coordinator factory.

Resolves which database to dump, in priority order:
1. An explicit URL (``--url``)
2. An explicit profile name (``--profile``)
3. The ``{env_prefix}DB_PROFILE`` environment variable

Profiles come from ``snapdump.toml``.

Usage:
    from pg_snapdump.factory import create_coordinator

    coordinator = create_coordinator("prod")
    result = await dump_database(coordinator, sink)
"""

import logging
import os
from urllib.parse import quote

from pg_snapdump.adapters.snapshot import SnapshotCoordinator
from pg_snapdump.config.loader import load_dump_config
from pg_snapdump.config.models import DatabaseProfile, DumpConfig
from pg_snapdump.dump.models import DEFAULT_CONNECT_TIMEOUT

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


# ============================================================================
# Profile Resolution
# ============================================================================


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get the active profile name from the environment.

    Args:
        env_prefix: Prefix for the environment variable, e.g. ``"MC_"``
            reads ``MC_DB_PROFILE``.

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If the variable is unset or empty
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Set {env_var}=<name>, or pass --profile or --url."
    )


def get_active_profile(
    profile_name: str | None = None,
    env_prefix: str = "",
    config: DumpConfig | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get the active profile name and its configuration.

    Args:
        profile_name: Explicit profile name; the environment is consulted
            when omitted.
        env_prefix: Prefix for the profile environment variable.
        config: Loaded config; read from ``snapdump.toml`` when omitted.

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile is configured, or the named
            profile is not in the config.
        FileNotFoundError: If the config file is missing.
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix)
    if config is None:
        config = load_dump_config()

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in snapdump.toml.\n"
            f"Available profiles: {available}"
        )

    return profile_name, config.profiles[profile_name]


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


# ============================================================================
# Factory
# ============================================================================


def create_coordinator(
    profile_name: str | None = None,
    *,
    database_url: str | None = None,
    env_prefix: str = "",
    config: DumpConfig | None = None,
    connect_timeout: int | None = None,
) -> SnapshotCoordinator:
    """Create an (unopened) snapshot coordinator.

    Args:
        profile_name: Profile to dump; see module docstring for priority.
        database_url: Explicit connection URL, bypassing profiles.
        env_prefix: Prefix for the profile environment variable.
        config: Loaded config; read from ``snapdump.toml`` when needed.
        connect_timeout: Seconds per connection attempt.  Defaults to the
            config's ``[dump] connect_timeout``.

    Returns:
        SnapshotCoordinator, to be entered with ``async with``.

    Raises:
        ProfileNotFoundError: If no URL or profile can be resolved.
        FileNotFoundError: If a profile is needed and the config is missing.
    """
    if database_url is None:
        if config is None:
            config = load_dump_config()
        profile_name, profile = get_active_profile(profile_name, env_prefix, config)
        database_url = resolve_url(profile)
        logger.debug("Using profile %s", profile_name)

    if connect_timeout is None:
        connect_timeout = (
            config.dump.connect_timeout if config is not None else DEFAULT_CONNECT_TIMEOUT
        )

    return SnapshotCoordinator(database_url, connect_timeout=connect_timeout)
