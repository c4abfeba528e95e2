"""Azure resource-management toolkit."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("az-toolkit")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
