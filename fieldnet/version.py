"""Version information for the field network service.

Read from the installed package metadata, falling back to a VERSION file
next to this module for source checkouts.
"""

import os
from importlib import metadata
from pathlib import Path


def get_version() -> str:
    """Get the service version, e.g. "0.3.0"."""
    try:
        return metadata.version("fieldnet")
    except metadata.PackageNotFoundError:
        pass

    version_file = Path(__file__).parent / "VERSION"
    if version_file.exists():
        try:
            version = version_file.read_text().strip()
            if version:
                return version.removeprefix("v")
        except OSError:
            pass

    return "0.0.0"


__version__ = get_version()


def get_commit() -> str:
    """Get the deployed commit SHA from FIELDNET_GIT_SHA, or "unknown"."""
    return os.getenv("FIELDNET_GIT_SHA", "").strip() or "unknown"
