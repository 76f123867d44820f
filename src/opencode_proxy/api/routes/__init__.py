"""
Routes API par domaine.
"""

from . import health
from . import proxy

__all__ = [
    "health",
    "proxy",
]
