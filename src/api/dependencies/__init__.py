"""
API Dependencies package.

Authentication for the operator endpoints.
"""

from .auth import verify_api_key, API_AUTH_ENABLED

__all__ = ["verify_api_key", "API_AUTH_ENABLED"]
