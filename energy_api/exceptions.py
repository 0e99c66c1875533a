"""
Exception types raised by the energy report core and storage adapters.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""


class EnergyReportError(Exception):
    """Base class for all energy report errors."""


class InvalidInputError(EnergyReportError, ValueError):
    """A request parameter (period granularity or date) is not acceptable."""


class StorageQueryError(EnergyReportError):
    """A storage backend query failed.

    Adapters wrap backend-specific exceptions in this type so the core
    never depends on driver exception hierarchies.
    """
