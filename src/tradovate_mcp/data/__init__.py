"""Cached Tradovate account data"""

from .cache import DomainCache

__all__ = ["DomainCache"]
