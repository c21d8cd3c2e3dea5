"""
FastAPI routers for the mock interview pipeline.

This module contains FastAPI routers for organizing API endpoints
into logical groups.
"""

from . import pipeline

__all__ = ["pipeline"]
