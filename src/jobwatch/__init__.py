"""jobwatch - Adaptive status polling and provider credential cache for remote analysis jobs."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("jobwatch")
except PackageNotFoundError:
    __version__ = "0.0.0"  # Fallback for development
