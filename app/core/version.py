# app/core/version.py
"""Version string from the installed distribution or a VERSION file."""
from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION_NAME = "capability-gateway"
VERSION_FILE = Path(__file__).parent.parent.parent / "VERSION"


@lru_cache()
def get_version() -> str:
    """
    Priority:
    1. VERSION file (for Docker/production images)
    2. Installed distribution metadata
    3. Fallback to 0.0.0-unknown
    """
    if VERSION_FILE.exists():
        text = VERSION_FILE.read_text().strip()
        if text:
            return text

    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "0.0.0-unknown"


VERSION = get_version()
