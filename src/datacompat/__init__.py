"""datacompat package root."""

from datacompat.markers import Default, data_compat

__all__ = ["__version__", "Default", "data_compat"]

__version__ = "0.1.0"
