"""
API Key authentication dependency for the scheduler control endpoints.

Optional authentication controlled by the API_AUTH_ENABLED environment
variable. When enabled, /scheduler/* requires an X-API-Key header matching
API_KEY. Reading the story and voting are never authenticated.
"""

import os
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

# Environment configuration (read at import; tests reload this module)
API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false").lower() == "true"
API_KEY = os.getenv("API_KEY", "")

api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,
    description="Operator API key (required for /scheduler/* when API_AUTH_ENABLED=true)",
)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Verify the operator API key.

    Raises:
        HTTPException: 401 if auth is enabled and the key is missing or wrong

    Returns:
        The API key if valid, None if auth is disabled
    """
    if not API_AUTH_ENABLED:
        return None

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    # An unset API_KEY never matches, even an empty header
    if not API_KEY or not secrets.compare_digest(api_key, API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key
