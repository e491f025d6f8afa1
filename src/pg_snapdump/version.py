"""Tool version resolution.

The version printed in the dump header is the installed package version
unless a remote version source is supplied, e.g. the latest release tag
of the project repository.  A remote lookup that fails never fails a
dump; it falls back to the installed version with a warning.

Usage:
    from functools import partial
    from pg_snapdump.version import fetch_latest_tag, resolve_tool_version

    version = resolve_tool_version(partial(fetch_latest_tag, "acme", "pg-snapdump"))
"""

import logging
from collections.abc import Callable
from importlib.metadata import PackageNotFoundError, version

import requests

logger = logging.getLogger(__name__)

__version__ = "0.1.0"

PACKAGE_NAME = "pg-snapdump"
TAGS_URL = "https://api.github.com/repos/{owner}/{repo}/tags"


def get_tool_version() -> str:
    """Return the installed package version, or the source version."""
    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        return __version__


def fetch_latest_tag(owner: str, repo: str, timeout: float = 5.0) -> str:
    """Fetch the most recent tag name of a GitHub repository.

    Args:
        owner: Repository owner.
        repo: Repository name.
        timeout: Request timeout in seconds.

    Returns:
        The first tag name reported by the GitHub API.

    Raises:
        requests.RequestException: On network or HTTP errors.
        ValueError: If the repository has no tags.
    """
    response = requests.get(
        TAGS_URL.format(owner=owner, repo=repo),
        headers={"Accept": "application/vnd.github+json"},
        timeout=timeout,
    )
    response.raise_for_status()
    tags = response.json()
    if not tags:
        raise ValueError(f"No tags found for {owner}/{repo}")
    return tags[0]["name"]


def resolve_tool_version(version_source: Callable[[], str] | None = None) -> str:
    """Resolve the version for the dump header.

    Args:
        version_source: Optional zero-argument callable returning a version
            string.  Any exception it raises is logged and ignored.

    Returns:
        The version from ``version_source``, or the installed version.
    """
    if version_source is None:
        return get_tool_version()
    try:
        return version_source()
    except Exception as e:
        logger.warning("Could not resolve tool version remotely: %s", e)
        return get_tool_version()
