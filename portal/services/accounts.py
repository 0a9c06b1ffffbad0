import logging
from typing import Optional

import bleach
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from rest_framework.exceptions import ValidationError as DRFValidation

from portal.models import AdminEmail, Doctor, Profile

User = get_user_model()
logger = logging.getLogger(__name__)

# Fields a user may change on their own profile; role and email are not among them
MUTABLE_PROFILE_FIELDS = ('first_name', 'last_name', 'phone')

SPECIALTIES = tuple(code for code, _ in Doctor.SPECIALTY_CHOICES)


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def clean_text(v: Optional[str]) -> str:
    return bleach.clean((v or '').strip(), tags=set(), strip=True)


def email_taken(email: str) -> bool:
    return User.objects.filter(username__iexact=normalize_email(email)).exists()


def is_admin_email(email: str) -> bool:
    return AdminEmail.objects.filter(email__iexact=normalize_email(email)).exists()


def register_account(*, email, password, first_name, last_name, role=Profile.ROLE_PATIENT,
                     qualification=None, specialty=None, experience_years=None) -> Profile:
    """Create identity, profile and (for doctors) the doctor row in one transaction.

    Doctors start unverified; everyone else is verified on creation.
    The admin role is only granted to allow-listed emails.
    """
    email = normalize_email(email)
    if role not in dict(Profile.ROLE_CHOICES):
        raise DRFValidation({'role': [f'unknown role {role}']})
    if email_taken(email):
        raise DRFValidation({'email': ['an account with this email already exists']})
    if role == Profile.ROLE_ADMIN and not is_admin_email(email):
        raise DRFValidation({'role': ['this email may not register as administrator']})
    if role == Profile.ROLE_DOCTOR:
        missing = [name for name, value in (
            ('qualification', qualification), ('specialty', specialty), ('experienceYears', experience_years)
        ) if value in (None, '')]
        if missing:
            raise DRFValidation({name: ['required for doctors'] for name in missing})
        if specialty not in SPECIALTIES:
            raise DRFValidation({'specialty': [f'unknown specialty {specialty}']})
    try:
        validate_password(password)
    except ValidationError as e:
        raise DRFValidation({'password': e.messages})

    first_name = clean_text(first_name)
    last_name = clean_text(last_name)
    try:
        with transaction.atomic():
            user = User.objects.create_user(
                username=email, email=email, password=password,
                first_name=first_name, last_name=last_name,
            )
            profile = Profile.objects.create(
                user=user, email=email, first_name=first_name, last_name=last_name,
                role=role, is_verified=(role != Profile.ROLE_DOCTOR),
            )
            if role == Profile.ROLE_DOCTOR:
                Doctor.objects.create(
                    profile=profile,
                    qualification=clean_text(qualification),
                    specialty=specialty,
                    experience_years=int(experience_years),
                    is_verified=False,
                )
    except IntegrityError:
        # A concurrent sign-up took the email between the check and the insert
        raise DRFValidation({'email': ['an account with this email already exists']})
    logger.info('registered %s as %s', user.pk, role)
    return profile


def update_own_profile(user, fields: dict) -> list[str]:
    """Apply the mutable subset of ``fields`` to ``user``'s profile.

    Unknown or protected keys are ignored.  Returns the names written.
    """
    profile = Profile.objects.get(pk=user.pk)
    changed = []
    for name in MUTABLE_PROFILE_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if name == 'phone':
            value = clean_text(value) or None
        else:
            value = clean_text(value)
            if not value:
                raise DRFValidation({name: ['may not be blank']})
        setattr(profile, name, value)
        changed.append(name)
    if not changed:
        return changed
    profile.save(update_fields=changed + ['updated_at'])
    user_fields = [n for n in changed if n in ('first_name', 'last_name')]
    if user_fields:
        for n in user_fields:
            setattr(user, n, getattr(profile, n))
        user.save(update_fields=user_fields)
    return changed


# ---------------------------------------------------------------------
# Admin email allow-list
# ---------------------------------------------------------------------
def list_admin_emails() -> list[AdminEmail]:
    return list(AdminEmail.objects.order_by('-created_at', '-id'))


def add_admin_email(email: str) -> AdminEmail:
    email = normalize_email(email)
    if '@' not in email:
        raise ValueError('please enter a valid email address')
    if AdminEmail.objects.filter(email__iexact=email).exists():
        raise ValueError('this email is already in the admin list')
    return AdminEmail.objects.create(email=email)


def remove_admin_email(entry_id: int) -> bool:
    deleted, _ = AdminEmail.objects.filter(pk=entry_id).delete()
    return bool(deleted)
