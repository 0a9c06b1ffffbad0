"""
Central view authorization table.

Every endpoint and every client router consults the same mapping from
view name to permitted roles.  A role of ``None`` means the role is not
known yet (profile still loading); it never grants access and never
produces a denial either.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

PATIENT = 'patient'
DOCTOR = 'doctor'
ADMIN = 'admin'
ALL_ROLES = frozenset({PATIENT, DOCTOR, ADMIN})

VIEW_ROLES: dict[str, frozenset[str]] = {
    'dashboard': ALL_ROLES,
    'appointments': ALL_ROLES,
    'appointments.new': frozenset({PATIENT, ADMIN}),
    'profile': ALL_ROLES,
    'settings': ALL_ROLES,
    'medical_records': ALL_ROLES,
    'doctors': frozenset({PATIENT, ADMIN}),
    'patients': frozenset({DOCTOR, ADMIN}),
    'admin': frozenset({ADMIN}),
}

ALLOW = 'allow'
LOADING = 'loading'
REDIRECT = 'redirect'

SIGN_IN_VIEW = 'auth'
FALLBACK_VIEW = 'unauthorized'


@dataclass(frozen=True)
class AccessDecision:
    outcome: str
    redirect_to: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == ALLOW

    def as_dict(self) -> dict:
        return {'decision': self.outcome, 'redirectTo': self.redirect_to}


def permitted_roles(view: str) -> frozenset[str]:
    return VIEW_ROLES.get(view, frozenset())


def is_authorized(role: Optional[str], view: str) -> bool:
    if role is None:
        return False
    return role in permitted_roles(view)


def decide_access(role: Optional[str], view: str, *, authenticated: bool = True) -> AccessDecision:
    """Decide what a client should do when ``role`` requests ``view``."""
    if not authenticated:
        return AccessDecision(REDIRECT, SIGN_IN_VIEW)
    if role is None:
        return AccessDecision(LOADING)
    if not is_authorized(role, view):
        return AccessDecision(REDIRECT, FALLBACK_VIEW)
    return AccessDecision(ALLOW)


def views_for_role(role: Optional[str]) -> list[str]:
    """Views a role may open, used to build navigation."""
    return sorted(v for v in VIEW_ROLES if is_authorized(role, v))
