"""
Caller Identity.

Bearer token verification for the HTTP boundary. Tokens are issued by the
web application's session layer; this package only verifies them.
"""

from unpackai.core.auth.service import AuthService, CallerIdentity

__all__ = [
    "AuthService",
    "CallerIdentity",
]
