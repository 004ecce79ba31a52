"""
Abstract base classes for the storage engines.
"""

from persist.interfaces.backend import Backend

__all__ = ["Backend"]
