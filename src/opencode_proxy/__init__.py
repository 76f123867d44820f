"""
Claude OpenCode Proxy - reverse proxy local entre la CLI Claude et une API
compatible Anthropic, avec réécriture de l'authentification et relais SSE.
"""

__version__ = "1.0.0"
