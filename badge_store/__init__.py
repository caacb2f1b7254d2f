"""
badge_store: multi-tier cache and persistent storage for stats badge services.
"""

__version__ = "1.0.0"
