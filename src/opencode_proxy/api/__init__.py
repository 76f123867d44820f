"""
Couche HTTP: router FastAPI et routes.
"""

from .router import api_router
from .dependencies import get_proxy_context

__all__ = ["api_router", "get_proxy_context"]
