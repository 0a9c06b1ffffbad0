"""
Session / identity management.

:class:`SessionManager` owns one :class:`SessionState` and is its only
writer.  Consumers read ``manager.state`` or subscribe to changes;
listeners run synchronously inside the state update so nothing renders
with a stale role.  The default listener pushes the new state to every
websocket client of the identity.

State machine::

    unauthenticated -> authenticating -> authenticated(role, profile)
    authenticated   -> unauthenticated      (sign-out, invalidation)

``authenticating`` is also where an identity without a profile stays:
its role is unknown, which is not the same as having no permissions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

from portal.exceptions import InvalidCredentials, ProfileMissing
from portal.models import Profile, User
from portal.services import accounts, doctors, notify
from portal.services.audit import log_action

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    UNAUTHENTICATED = 'unauthenticated'
    AUTHENTICATING = 'authenticating'
    AUTHENTICATED = 'authenticated'


@dataclass(frozen=True)
class ProfileSnapshot:
    """Immutable, non-authoritative copy of a profile row."""
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str]
    role: str
    is_verified: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_profile(cls, profile: Profile) -> 'ProfileSnapshot':
        if profile is None or profile.pk is None:
            raise ProfileMissing('profile row is missing')
        if profile.role not in dict(Profile.ROLE_CHOICES):
            raise ValueError(f'profile {profile.pk} has unknown role {profile.role!r}')
        return cls(
            id=profile.pk,
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            phone=profile.phone,
            role=profile.role,
            is_verified=profile.is_verified,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )

    def as_dict(self) -> dict:
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'phone': self.phone,
            'role': self.role,
            'isVerified': self.is_verified,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus = SessionStatus.UNAUTHENTICATED
    user_id: Optional[int] = None
    profile: Optional[ProfileSnapshot] = None

    @property
    def role(self) -> Optional[str]:
        if self.status != SessionStatus.AUTHENTICATED or self.profile is None:
            return None
        return self.profile.role

    @property
    def is_authenticated(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATED

    def as_dict(self) -> dict:
        return {
            'status': self.status.value,
            'userId': self.user_id,
            'role': self.role,
            'profile': self.profile.as_dict() if self.profile else None,
        }


Listener = Callable[[SessionState, SessionState], None]


def push_listener(old: SessionState, new: SessionState) -> None:
    """Forward a state change to the identity's websocket group."""
    user_id = new.user_id or old.user_id
    if user_id is None:
        return
    notify.session_changed(
        user_id,
        status=new.status.value,
        role=new.role,
        profile=new.profile.as_dict() if new.profile else None,
    )


@dataclass
class SignOutResult:
    revoked: bool
    blacklisted: int = 0
    error: Optional[str] = None


class SessionManager:
    def __init__(self, *, listeners: Optional[list[Listener]] = None, request_ip: Optional[str] = None):
        self._state = SessionState()
        self._user: Optional[User] = None
        self._listeners: list[Listener] = list(listeners) if listeners is not None else [push_listener]
        self._request_ip = request_ip

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> Optional[User]:
        return self._user

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _set_state(self, new: SessionState) -> None:
        old = self._state
        self._state = new
        if old == new:
            return
        for listener in list(self._listeners):
            listener(old, new)

    def _fetch_profile(self, user: User) -> Optional[ProfileSnapshot]:
        try:
            profile = Profile.objects.get(pk=user.pk)
        except Profile.DoesNotExist:
            logger.warning('identity %s has no profile', user.pk)
            return None
        return ProfileSnapshot.from_profile(profile)

    def _settle(self, user: User) -> SessionState:
        """Load the profile of an authenticated identity into state."""
        self._user = user
        snapshot = self._fetch_profile(user)
        if snapshot is None:
            # Role unknown until the profile shows up
            self._set_state(SessionState(SessionStatus.AUTHENTICATING, user_id=user.pk))
        else:
            self._set_state(SessionState(SessionStatus.AUTHENTICATED, user_id=user.pk, profile=snapshot))
        return self._state

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def resolve(self, user) -> SessionState:
        """Resolve an existing session (initial load)."""
        if not (user and getattr(user, 'is_authenticated', False) and user.is_active):
            self._user = None
            self._set_state(SessionState())
            return self._state
        self._set_state(SessionState(SessionStatus.AUTHENTICATING, user_id=user.pk))
        return self._settle(user)

    def sign_in(self, email: str, password: str, *, request=None) -> SessionState:
        email = accounts.normalize_email(email)
        self._set_state(SessionState(SessionStatus.AUTHENTICATING))
        user = authenticate(request, username=email, password=password)
        if user is None:
            self._user = None
            self._set_state(SessionState())
            log_action(user=None, action='signin', object_type='user',
                       detail={'result': 'fail', 'email': email, 'ip': self._request_ip})
            raise InvalidCredentials('Invalid email or password')
        log_action(user=user, action='signin', object_type='user', object_id=user.pk,
                   detail={'result': 'ok', 'ip': self._request_ip})
        return self._settle(user)

    def sign_up(self, email: str, password: str, first_name: str, last_name: str,
                role: str = Profile.ROLE_PATIENT, qualification: Optional[str] = None,
                specialty: Optional[str] = None, experience_years: Optional[int] = None) -> Profile:
        """Register a new account; does not sign it in."""
        profile = accounts.register_account(
            email=email, password=password, first_name=first_name, last_name=last_name,
            role=role, qualification=qualification, specialty=specialty,
            experience_years=experience_years,
        )
        log_action(user=profile.user, action='signup', object_type='profile', object_id=profile.pk,
                   detail={'role': profile.role, 'ip': self._request_ip})
        return profile

    def sign_out(self) -> SignOutResult:
        """Clear the session; token revocation is best-effort."""
        user = self._user
        self._user = None
        self._set_state(SessionState())
        if user is None:
            return SignOutResult(revoked=True)
        try:
            blacklisted = _revoke_tokens(user)
        except Exception as exc:
            logger.warning('token revocation failed for %s', user.pk, exc_info=True)
            return SignOutResult(revoked=False, error=str(exc))
        log_action(user=user, action='signout', object_type='user', object_id=user.pk,
                   detail={'blacklisted': blacklisted})
        return SignOutResult(revoked=True, blacklisted=blacklisted)

    def invalidate(self) -> None:
        """The session was ended elsewhere (e.g. account deactivated)."""
        self._user = None
        self._set_state(SessionState())

    def update_profile(self, fields: dict) -> ProfileSnapshot:
        """Write the mutable profile fields, then re-fetch into state."""
        if not self._state.is_authenticated or self._user is None:
            raise ProfileMissing('no authenticated profile to update')
        changed = accounts.update_own_profile(self._user, fields)
        snapshot = self._fetch_profile(self._user)
        if snapshot is None:
            raise ProfileMissing('profile disappeared during update')
        if snapshot.role == Profile.ROLE_DOCTOR and {'first_name', 'last_name'} & set(changed):
            doctors.invalidate_directory()
        self._set_state(SessionState(SessionStatus.AUTHENTICATED, user_id=self._user.pk, profile=snapshot))
        log_action(user=self._user, action='profile_update', object_type='profile', object_id=self._user.pk,
                   detail={'fields': changed})
        return snapshot


def _revoke_tokens(user: User) -> int:
    Token.objects.filter(user=user).delete()
    count = 0
    for token in OutstandingToken.objects.filter(user=user):
        _, created = BlacklistedToken.objects.get_or_create(token=token)
        count += int(created)
    return count

