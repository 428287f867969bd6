"""
Authentication helpers for the CMS gateway.

Two credentials flow through the gateway: the caller's own token (bearer
header or session cookie) and the gateway's service credential, which is
exchanged with the CMS and cached in-process.
"""

from .session import Identity, authenticate_bearer, authenticate_session, extract_bearer_token
from .token_cache import ServiceTokenCache

__all__ = [
    "Identity",
    "ServiceTokenCache",
    "authenticate_bearer",
    "authenticate_session",
    "extract_bearer_token",
]
