"""
Custom permission classes for role based access control.

Role checks are delegated to :mod:`portal.services.access` so that the
API and client routers share one authorization table.
"""
from django.core.exceptions import ObjectDoesNotExist
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission

from portal.services.access import ADMIN, DOCTOR, PATIENT, is_authorized


class ProfilePending(PermissionDenied):
    default_detail = 'profile is not available yet'
    default_code = 'profile_pending'


def profile_of(user):
    """Return the profile of an authenticated user, or None when missing."""
    if not (user and getattr(user, 'is_authenticated', False)):
        return None
    try:
        return user.profile
    except ObjectDoesNotExist:
        return None


def role_of(user):
    """Return the portal role of ``user`` or ``None`` when unknown."""
    profile = profile_of(user)
    return profile.role if profile else None


class _RolePermission(BasePermission):
    roles: frozenset = frozenset()

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, 'user', None)
        if not (user and user.is_authenticated):
            return False
        role = role_of(user)
        if role is None:
            raise ProfilePending()
        return role in self.roles


class IsAdminRole(_RolePermission):
    """Allow access only to users with the admin role."""
    roles = frozenset({ADMIN})


class IsDoctorRole(_RolePermission):
    """Allow access only to users with the doctor role."""
    roles = frozenset({DOCTOR})


class IsPatientRole(_RolePermission):
    """Allow access only to users with the patient role."""
    roles = frozenset({PATIENT})


def ViewAccess(view_name: str):
    """Build a permission class guarding the portal view ``view_name``."""

    class _ViewAccess(BasePermission):
        message = f'not allowed to open {view_name}'

        def has_permission(self, request, view) -> bool:  # type: ignore[override]
            user = getattr(request, 'user', None)
            if not (user and user.is_authenticated):
                return False
            role = role_of(user)
            if role is None:
                raise ProfilePending()
            return is_authorized(role, view_name)

    _ViewAccess.__name__ = f'ViewAccess_{view_name.replace(".", "_")}'
    return _ViewAccess
