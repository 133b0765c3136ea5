"""
Exception types raised by multienrich components.

ConfigurationError covers caller data and binding problems; DataShapeError
covers selections that leave nothing to build a graph from.
"""

from typing import Optional


class MultiEnrichError(Exception):
    """Base class for multienrich errors."""

    def __init__(self, message: str, component: Optional[str] = None):
        self.component = component
        if component:
            message = f"{component}: {message}"
        super().__init__(message)


class ConfigurationError(MultiEnrichError, ValueError):
    """Missing or ambiguous column bindings, or malformed input values."""


class DataShapeError(MultiEnrichError, ValueError):
    """No categories are left to build the requested graph."""
