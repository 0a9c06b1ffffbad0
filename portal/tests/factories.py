"""Small builders for test data; each returns the created ``Profile``."""
from datetime import timedelta

from django.utils import timezone

from portal.models import AdminEmail, Appointment, Doctor, Profile, User

PASSWORD = 'secret1'


def make_identity(email: str, *, password: str = PASSWORD, first_name: str = 'Test', last_name: str = 'User') -> User:
    return User.objects.create_user(
        username=email, email=email, password=password, first_name=first_name, last_name=last_name,
    )


def make_profile(email: str, role: str, *, first_name: str = 'Test', last_name: str = 'User',
                 verified: bool = True) -> Profile:
    user = make_identity(email, first_name=first_name, last_name=last_name)
    return Profile.objects.create(
        user=user, email=email, first_name=first_name, last_name=last_name, role=role, is_verified=verified,
    )


def make_patient(email: str = 'patient@example.com', **kw) -> Profile:
    kw.setdefault('first_name', 'Pat')
    kw.setdefault('last_name', 'Smith')
    return make_profile(email, Profile.ROLE_PATIENT, **kw)


def make_doctor(email: str = 'doctor@example.com', *, verified: bool = True, specialty: str = 'cardiology',
                first_name: str = 'Dana', last_name: str = 'Heart') -> Profile:
    profile = make_profile(email, Profile.ROLE_DOCTOR, first_name=first_name, last_name=last_name, verified=verified)
    Doctor.objects.create(
        profile=profile, qualification='MBBS', specialty=specialty, experience_years=5, is_verified=verified,
    )
    return profile


def make_admin(email: str = 'admin@example.com') -> Profile:
    AdminEmail.objects.get_or_create(email=email)
    return make_profile(email, Profile.ROLE_ADMIN, first_name='Ada', last_name='Min')


def make_appointment(doctor: Profile, patient: Profile, *, when=None, status: str = Appointment.STATUS_SCHEDULED,
                     duration: int = 30) -> Appointment:
    return Appointment.objects.create(
        doctor_id=doctor.pk,
        patient=patient,
        appointment_date=when or (timezone.now() + timedelta(days=1)),
        duration_minutes=duration,
        status=status,
    )
