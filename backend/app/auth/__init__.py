"""Token issuing and request authentication."""

from .tokens import (
    InvalidTokenError,
    Principal,
    TokenConfig,
    decode_access_token,
    issue_access_token,
    load_token_config,
)

__all__ = [
    "InvalidTokenError",
    "Principal",
    "TokenConfig",
    "decode_access_token",
    "issue_access_token",
    "load_token_config",
]
