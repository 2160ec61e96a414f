"""
Database init - Exports for routes and services
"""

from .base import Base, TimestampMixin
from backoffice.database import engine, SessionLocal, get_db, transaction

__all__ = ["Base", "TimestampMixin", "engine", "SessionLocal", "get_db", "transaction"]
