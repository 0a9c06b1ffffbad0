import logging

from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class InvalidCredentials(Exception):
    """Sign-in rejected by the identity backend."""


class ProfileMissing(Exception):
    """An identity exists but its profile row does not (yet)."""


class TransitionNotAllowed(ValueError):
    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(f'cannot move appointment from {current} to {new}')


_CODES = (
    (exceptions.ValidationError, 'validation_error'),
    (exceptions.NotAuthenticated, 'not_authenticated'),
    (exceptions.AuthenticationFailed, 'not_authenticated'),
    (exceptions.PermissionDenied, 'forbidden'),
    (exceptions.NotFound, 'not_found'),
    (exceptions.Throttled, 'throttled'),
)


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = next((c for klass, c in _CODES if isinstance(exc, klass)), 'api_error')
    # Permission classes may attach a more specific code
    if code == 'forbidden' and getattr(exc, 'default_code', None) == 'profile_pending':
        code = 'profile_pending'
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)


def error_response(code: str, message, status: int) -> Response:
    """Error payload in the same shape the exception handler produces."""
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=status)
