"""
API routes for Visitor Analytics.
"""

from .api import create_stats_router

__all__ = ["create_stats_router"]
