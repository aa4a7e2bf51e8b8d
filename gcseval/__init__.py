"""gcseval - Test harness for the gcloud storage CLI and its signed URLs."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("gcseval")
except PackageNotFoundError:
    # Package not installed, fallback to pyproject.toml version
    __version__ = "0.1.0"
