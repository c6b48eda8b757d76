"""Version information for hostsync."""

__version__ = "1.0.0"
__version_info__ = tuple(int(i) for i in __version__.split("."))

MINIMUM_PYTHON_VERSION = (3, 8)
MINIMUM_UNISON_VERSION = "2.51.0"


def get_version() -> str:
    """Get the current version string."""
    return __version__


def get_version_info() -> tuple:
    """Get the current version as a tuple."""
    return __version_info__
