"""Library version information."""

_VERSION = "1.3.1"


def libtatsu_version() -> str:
    """Return the version string of this library."""
    return _VERSION