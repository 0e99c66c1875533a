"""
Room energy report API.

Aggregates cumulative energy-meter readings into room consumption and grid
supply per calendar period for the energy dashboard.
"""

__version__ = "0.1.0"
