"""search/__init__.py"""
from .client import SearchClient, SearchError

__all__ = ["SearchClient", "SearchError"]
