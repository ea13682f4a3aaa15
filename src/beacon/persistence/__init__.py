"""Persistence layer for Beacon.

This module provides:
- Async engine and session factory (PostgreSQL via asyncpg)
- SQLAlchemy ORM models for disasters, resources, reports,
  the verification log, and the expiring cache table
- Repositories that own the audit-trail append contract
"""

from beacon.persistence.db import close_db, get_engine, get_session, init_db
from beacon.persistence.repositories import (
    DisasterRepository,
    ReportRepository,
    ResourceRepository,
    VerificationLogRepository,
)
from beacon.persistence.tables import (
    CacheTable,
    DisasterTable,
    ReportTable,
    ResourceTable,
    VerificationLogTable,
)

__all__ = [
    # DB
    "close_db",
    "get_engine",
    "get_session",
    "init_db",
    # Tables
    "CacheTable",
    "DisasterTable",
    "ReportTable",
    "ResourceTable",
    "VerificationLogTable",
    # Repositories
    "DisasterRepository",
    "ReportRepository",
    "ResourceRepository",
    "VerificationLogRepository",
]
