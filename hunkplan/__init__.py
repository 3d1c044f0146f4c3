"""Split a working-tree diff into a reviewed stack of conventional commits."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("hunkplan")
except PackageNotFoundError:
    # Fallback for development mode
    __version__ = "0.0.0-dev"
