# Auth module for the Affiliate Service

from auth.dependencies import (
    create_access_token,
    decode_access_token,
    get_current_merchant,
)

__all__ = [
    "create_access_token",
    "decode_access_token",
    "get_current_merchant",
]
