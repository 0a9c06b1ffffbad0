"""
Token authentication for the portal API.

Kept apart from the views in ``portal.auth_views`` so that DRF can load
the authentication classes at start-up without importing any view.
Deactivated identities are rejected here, so a revoked account loses
API access on its next request.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    """``Authorization: Token <key>`` authentication."""

    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        if not user.is_active:
            raise exceptions.AuthenticationFailed('account is deactivated')
        return user, token
