"""Version information for the casbin SQL adapter."""

__version__ = "0.1.0"
__version_info__ = tuple(int(i) for i in __version__.split("."))

# Dialects with table provisioning support
SUPPORTED_DIALECTS = ["mysql", "mariadb", "postgresql", "mssql", "oracle", "sqlite"]


def get_version() -> str:
    """Get the current version string."""
    return __version__
