"""
API v1 package.

Contains versioned API routes for the student registration API.
"""

from alumnic.api.v1.routes import router

__all__ = ["router"]
