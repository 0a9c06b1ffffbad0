import logging
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.db.models import Q

from portal.models import Doctor, Profile
from portal.services import notify
from portal.services.accounts import clean_text

logger = logging.getLogger(__name__)

_GENERATION_KEY = 'doctors:gen'


def serialize_doctor(d: Doctor, *, private: bool = False) -> dict:
    p = d.profile
    data = {
        'id': d.pk,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'name': p.full_name,
        'specialty': d.specialty,
        'qualification': d.qualification,
        'experienceYears': d.experience_years,
        'bio': d.bio,
        'availability': d.availability,
        'isVerified': d.is_verified,
    }
    if private:
        data.update({
            'email': p.email,
            'phone': p.phone,
            'isRejected': d.is_rejected,
            'createdAt': d.created_at.isoformat() if d.created_at else None,
        })
    return data


def _generation() -> int:
    return cache.get_or_set(_GENERATION_KEY, 1, None)


def invalidate_directory() -> None:
    """Drop every cached directory page by bumping the key generation."""
    cache.set(_GENERATION_KEY, _generation() + 1, None)


def list_verified_doctors(*, specialty: Optional[str] = None, q: Optional[str] = None) -> list[dict]:
    """Public directory: verified doctors only, optionally filtered."""
    cache_key = f"doctors:v={_generation()}:s={specialty or ''}:q={(q or '').lower()}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached
    qs = Doctor.objects.select_related('profile').filter(
        is_verified=True, is_rejected=False, profile__role=Profile.ROLE_DOCTOR,
    )
    if specialty:
        qs = qs.filter(specialty=specialty)
    if q:
        qs = qs.filter(Q(profile__first_name__icontains=q) | Q(profile__last_name__icontains=q))
    data = [serialize_doctor(d) for d in qs.order_by('profile__last_name', 'profile__first_name')]
    cache.set(cache_key, data, settings.DIRECTORY_CACHE_SECONDS)
    return data


def get_doctor(doctor_id: int, *, include_unverified: bool = False) -> Optional[Doctor]:
    qs = Doctor.objects.select_related('profile')
    if not include_unverified:
        qs = qs.filter(is_verified=True, is_rejected=False, profile__role=Profile.ROLE_DOCTOR)
    return qs.filter(pk=doctor_id).first()


def list_all_doctors(*, state: Optional[str] = None) -> list[Doctor]:
    """Admin listing; pending doctors first, newest first within each group."""
    qs = Doctor.objects.select_related('profile')
    if state == 'pending':
        qs = qs.filter(is_verified=False, is_rejected=False)
    elif state == 'verified':
        qs = qs.filter(is_verified=True)
    elif state == 'rejected':
        qs = qs.filter(is_rejected=True)
    return list(qs.order_by('is_verified', '-created_at'))


def pending_count() -> int:
    return Doctor.objects.filter(is_verified=False, is_rejected=False).count()


def _push_profile(profile: Profile) -> None:
    notify.session_changed(
        profile.pk,
        status='authenticated',
        role=profile.role,
        profile={'id': profile.pk, 'role': profile.role, 'isVerified': profile.is_verified},
    )


def set_verification(doctor_id: int, *, approved: bool) -> Doctor:
    """Approve or reject a doctor; the profile flag follows the doctor flag."""
    with transaction.atomic():
        doctor = Doctor.objects.select_for_update().select_related('profile').get(pk=doctor_id)
        doctor.is_verified = approved
        doctor.is_rejected = not approved
        doctor.save(update_fields=['is_verified', 'is_rejected', 'updated_at'])
        profile = doctor.profile
        profile.is_verified = approved
        profile.save(update_fields=['is_verified', 'updated_at'])
    logger.info('doctor %s %s', doctor_id, 'verified' if approved else 'rejected')
    invalidate_directory()
    _push_profile(profile)
    return doctor


def revoke_verification(doctor_id: int) -> Doctor:
    """Take a doctor out of the directory without marking them rejected."""
    with transaction.atomic():
        doctor = Doctor.objects.select_for_update().select_related('profile').get(pk=doctor_id)
        doctor.is_verified = False
        doctor.save(update_fields=['is_verified', 'updated_at'])
        profile = doctor.profile
        profile.is_verified = False
        profile.save(update_fields=['is_verified', 'updated_at'])
    invalidate_directory()
    _push_profile(profile)
    return doctor


def update_own_doctor(doctor: Doctor, *, bio=None, availability=None, qualification=None) -> list[str]:
    changed = []
    if bio is not None:
        doctor.bio = clean_text(bio) or None
        changed.append('bio')
    if availability is not None:
        if not isinstance(availability, (dict, list)):
            raise ValueError('availability must be an object or a list')
        doctor.availability = availability
        changed.append('availability')
    if qualification is not None:
        qualification = clean_text(qualification)
        if not qualification:
            raise ValueError('qualification may not be blank')
        doctor.qualification = qualification
        changed.append('qualification')
    if changed:
        doctor.save(update_fields=changed + ['updated_at'])
        if doctor.is_verified:
            invalidate_directory()
    return changed


def set_role(profile_id: int, role: str, *, acting_profile: Profile) -> Profile:
    """Change a profile's role.  Moving to ``doctor`` needs an existing doctor row."""
    if role not in dict(Profile.ROLE_CHOICES):
        raise ValueError(f'unknown role {role}')
    if profile_id == acting_profile.pk and role != Profile.ROLE_ADMIN:
        raise PermissionError('administrators cannot demote themselves')
    with transaction.atomic():
        profile = Profile.objects.select_for_update().get(pk=profile_id)
        if role == Profile.ROLE_DOCTOR and not Doctor.objects.filter(pk=profile.pk).exists():
            raise ValueError('profile has no doctor details')
        if profile.role == role:
            return profile
        profile.role = role
        profile.save(update_fields=['role', 'updated_at'])
    logger.info('profile %s role -> %s by %s', profile_id, role, acting_profile.pk)
    invalidate_directory()
    _push_profile(profile)
    return profile
