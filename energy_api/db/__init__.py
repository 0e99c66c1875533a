"""
Database package for SQLAlchemy models and session management.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from energy_api.db.models import Base, EnergySample, MeterAssignment
from energy_api.db.session import create_engine, create_session_factory

__all__ = [
    "Base",
    "EnergySample",
    "MeterAssignment",
    "create_engine",
    "create_session_factory",
]
