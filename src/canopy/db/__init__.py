# src/canopy/db/__init__.py
"""Database configuration and utilities."""

from .session import Base, SessionLocal, configure_sqlite, create_tables, drop_tables, get_db

__all__ = ["Base", "get_db", "SessionLocal", "configure_sqlite", "create_tables", "drop_tables"]
