"""
Caching package for the device-to-room mapping.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from energy_api.cache.mapping_cache import DeviceRef, MappingCache, MappingSnapshot

__all__ = ["DeviceRef", "MappingCache", "MappingSnapshot"]
