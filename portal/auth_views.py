"""
Authentication and session views.

Every request builds a short-lived :class:`SessionManager` for the
caller; the manager applies the state transition and pushes it to the
caller's other connected clients.  Token issuing (DRF token plus a
SimpleJWT pair) stays here so that ``portal.authentication`` can be
imported by DRF without pulling in views.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken

from portal.exceptions import InvalidCredentials, ProfileMissing, error_response
from portal.permissions import ProfilePending
from portal.serializers.auth import ProfileUpdateSerializer, SignInSerializer, SignUpSerializer
from portal.services.access import decide_access, views_for_role
from portal.services.session import SessionManager, push_listener
from portal.throttling import LoginRateThrottle, SignUpRateThrottle


def client_ip(request) -> str | None:
    return request.META.get('REMOTE_ADDR')


def session_for(request) -> SessionManager:
    """Resolve the caller's session state.

    Resolving is silent; only the transitions that follow are pushed.
    """
    manager = SessionManager(listeners=[], request_ip=client_ip(request))
    manager.resolve(getattr(request, 'user', None))
    manager.subscribe(push_listener)
    return manager


def issue_tokens(user) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
    }


def session_payload(manager: SessionManager) -> dict:
    state = manager.state
    payload = state.as_dict()
    payload['views'] = views_for_role(state.role) if state.role else []
    return payload


# ---------------------------------------------------------------------
# Sign in / sign up
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def signin_view(request):
    """Email/password sign-in; the role always comes from the stored profile."""
    s = SignInSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    manager = SessionManager(request_ip=client_ip(request))
    try:
        manager.sign_in(vd['email'], vd['password'], request=request._request)
    except InvalidCredentials as e:
        return error_response('invalid_credentials', str(e), 400)

    return Response({'ok': True, **issue_tokens(manager.user), 'session': session_payload(manager)})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([SignUpRateThrottle])
def signup_view(request):
    """Register an account.

    Accounts verified on creation are signed in straight away; doctors
    awaiting verification get no tokens.
    """
    s = SignUpSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    manager = SessionManager(request_ip=client_ip(request))
    profile = manager.sign_up(
        email=vd['email'],
        password=vd['password'],
        first_name=vd['firstName'],
        last_name=vd['lastName'],
        role=vd.get('role') or 'patient',
        qualification=vd.get('qualification'),
        specialty=vd.get('specialty'),
        experience_years=vd.get('experienceYears'),
    )
    payload = {
        'ok': True,
        'id': profile.pk,
        'role': profile.role,
        'isVerified': profile.is_verified,
        'pendingVerification': not profile.is_verified,
    }
    if profile.is_verified:
        manager.resolve(profile.user)
        payload.update(issue_tokens(profile.user), session=session_payload(manager))
    return Response(payload, status=201)


# ---------------------------------------------------------------------
# Sign out / refresh
# ---------------------------------------------------------------------
def _blacklist_refresh(raw: str) -> str | None:
    """Blacklist a refresh token; one already blacklisted counts as done."""
    try:
        RefreshToken(raw).blacklist()
    except TokenError as e:
        try:
            jti = RefreshToken(raw, verify=False)['jti']
        except TokenError:
            return str(e)
        if not BlacklistedToken.objects.filter(token__jti=jti).exists():
            return str(e)
    return None


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def signout_view(request):
    """Clear the session.  Token revocation failures are reported, not raised."""
    manager = session_for(request)
    refresh = request.data.get('refresh') if hasattr(request.data, 'get') else None
    result = manager.sign_out()
    if refresh:
        error = _blacklist_refresh(refresh)
        if error:
            result.revoked = False
            result.error = error
    payload = {'ok': True, 'revoked': result.revoked, 'blacklisted': result.blacklisted}
    if result.error:
        payload['error'] = result.error
    return Response(payload)


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    """Return a new access token from a refresh token."""
    s = TokenRefreshSerializer(data=request.data)
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    data = {'ok': True, 'jwt_access': s.validated_data['access']}
    if 'refresh' in s.validated_data:
        data['jwt_refresh'] = s.validated_data['refresh']
    return Response(data)


# ---------------------------------------------------------------------
# Session / profile
# ---------------------------------------------------------------------
@api_view(['GET'])
@permission_classes([AllowAny])
def session_view(request):
    return Response({'ok': True, 'session': session_payload(session_for(request))})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def profile_view(request):
    manager = session_for(request)
    if not manager.state.is_authenticated:
        raise ProfilePending()
    return Response({'ok': True, 'profile': manager.state.profile.as_dict()})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def profile_update_view(request):
    """Update names and phone.  Role and email are never taken from the payload."""
    s = ProfileUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    manager = session_for(request)
    try:
        snapshot = manager.update_profile(s.to_fields())
    except ProfileMissing:
        raise ProfilePending()
    return Response({'ok': True, 'profile': snapshot.as_dict()})


@api_view(['GET'])
@permission_classes([AllowAny])
def access_view(request):
    """Routing decision for a portal view, for client-side routers."""
    view_name = (request.query_params.get('view') or '').strip()
    if not view_name:
        return error_response('validation_error', 'view is required', 400)
    state = session_for(request).state
    authenticated = state.user_id is not None
    decision = decide_access(state.role, view_name, authenticated=authenticated)
    return Response({'ok': True, 'view': view_name, **decision.as_dict()})
