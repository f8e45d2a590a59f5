"""
Authentication helpers for the Workflow Gateway service.
"""

from .jwt_auth import CallerAuthenticator, CallerIdentity

__all__ = [
    "CallerAuthenticator",
    "CallerIdentity",
]
