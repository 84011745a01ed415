"""Build metadata reported by / and /health.

APP_VERSION comes from the APP_VERSION env var, then the installed package
metadata. GIT_COMMIT comes from the GIT_COMMIT env var, then git itself.
"""

import os
import subprocess
from importlib import metadata

DISTRIBUTION_NAME = "promptify-backend"


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "dev"


def _git_short_sha() -> str:
    """Read short SHA from git for local development."""
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION") or _installed_version()
GIT_COMMIT: str = os.environ.get("GIT_COMMIT") or _git_short_sha()
