"""
WebSocket authentication from a ``?token=`` query parameter.

Browsers cannot set an ``Authorization`` header on a WebSocket
handshake, so clients pass either their DRF token key or a JWT access
token in the query string.  Sockets that already carry an authenticated
session user are left untouched.
"""
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError


@database_sync_to_async
def user_for_token(raw: str):
    token = Token.objects.select_related("user").filter(key=raw).first()
    if token is not None:
        return token.user if token.user.is_active else AnonymousUser()
    auth = JWTAuthentication()
    try:
        validated = auth.get_validated_token(raw)
        return auth.get_user(validated)
    except (AuthenticationFailed, TokenError):
        return AnonymousUser()


class TokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        user = scope.get("user")
        if not (user and getattr(user, "is_authenticated", False)):
            query = parse_qs((scope.get("query_string") or b"").decode())
            raw = (query.get("token") or [""])[0]
            if raw:
                scope = dict(scope, user=await user_for_token(raw))
        return await super().__call__(scope, receive, send)
