"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
StealthPay, a product of Garudex Labs

Version information for StealthPay Core.

A source checkout reads the VERSION file next to the package; an installed
distribution reads its own metadata.
"""

from importlib import metadata
from pathlib import Path

DISTRIBUTION_NAME = "stealthpay-core"


def get_version() -> str:
    """
    Return the StealthPay Core version string (e.g., "0.1.0").
    """
    version_file = Path(__file__).parent.parent / "VERSION"
    if version_file.exists():
        return version_file.read_text().strip()
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "unknown"


__version__ = get_version()
