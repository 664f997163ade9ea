"""
Authentication Utilities
=======================

API key validation for the chat endpoints.
"""

import hashlib
import hmac
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import APIKeyHeader

from dexter_bridge.config.settings import get_settings
from dexter_bridge.config.logging import get_logger

logger = get_logger(__name__)

# API key header
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_api_key_hash(api_key: str) -> str:
    """
    Hash API key for logging and comparison.

    Args:
        api_key: API key to hash

    Returns:
        Hashed API key
    """
    return hashlib.sha256(api_key.encode()).hexdigest()


async def validate_api_key(api_key: Optional[str] = Depends(api_key_header)) -> str:
    """
    Validate API key.

    Args:
        api_key: API key from header

    Returns:
        API key if valid

    Raises:
        HTTPException: If API key is invalid
    """
    settings = get_settings()

    # Skip validation when no keys are configured or in development mode if configured
    if not settings.api_keys or (settings.debug and settings.skip_api_key_validation):
        return "development_key"

    if not api_key:
        raise HTTPException(
            status_code=401, detail="API key is required", headers={"WWW-Authenticate": "ApiKey"}
        )

    if not any(hmac.compare_digest(api_key, valid) for valid in settings.api_keys):
        logger.warning("Rejected API key", api_key_hash=get_api_key_hash(api_key)[:12])
        raise HTTPException(
            status_code=401, detail="Invalid API key", headers={"WWW-Authenticate": "ApiKey"}
        )

    return api_key
