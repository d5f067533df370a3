"""
Utility functions for the reflectboard API.
"""

import logging

from fastapi import Request

logger = logging.getLogger(__name__)

# Longest textual IPv6 address; also the width of reflections.voter_identity
MAX_IDENTITY_LENGTH = 45

UNKNOWN_IDENTITY = "unknown"


def get_client_ip(request: Request, trust_forwarded_for: bool = True) -> str:
    """
    Derive the voter identity for a request.

    Uses the first X-Forwarded-For entry when trusted, then the socket peer
    address. Nothing here is verified: any client can send its own
    X-Forwarded-For header, so this only deduplicates honest clients.

    Args:
        request: FastAPI request object
        trust_forwarded_for: Whether to honour the X-Forwarded-For header

    Returns:
        Identity string, at most MAX_IDENTITY_LENGTH characters
    """
    identity = None

    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            identity = forwarded.split(",")[0].strip() or None

    if identity is None and request.client is not None:
        identity = request.client.host

    identity = identity or UNKNOWN_IDENTITY
    logger.debug(f"Resolved client identity: {identity}")
    return identity[:MAX_IDENTITY_LENGTH]
