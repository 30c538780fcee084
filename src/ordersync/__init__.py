from __future__ import annotations

from importlib import metadata

try:
    __version__ = metadata.version("ordersync")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0+local"
