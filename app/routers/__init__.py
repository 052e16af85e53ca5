"""
API Routers
Separate router modules for each domain.
"""

from app.routers import keygen

__all__ = ["keygen"]
