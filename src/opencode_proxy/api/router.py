"""
Router principal de l'API.
"""
from fastapi import APIRouter

from .routes import health, proxy

# Router principal
api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["health"])
# Catch-all: doit rester en dernier pour ne pas masquer /health
api_router.include_router(proxy.router, prefix="", tags=["proxy"])
