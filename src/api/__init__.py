"""
API Package
HTTP surface of the Messenger Relay Service.
"""

from src.api.routes import router

__all__ = ["router"]
