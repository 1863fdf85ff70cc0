"""
Marketplace Dashboard

Analytics aggregation service for the brand admin panel.
"""

__version__ = "1.0.0"
