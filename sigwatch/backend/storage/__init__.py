"""storage/__init__.py"""
from .database import Database
from .repository import AlertRepository

__all__ = ["Database", "AlertRepository"]
