"""
Appointment booking and listing.

Scoping follows the role of the caller: patients see their own
appointments, doctors the ones booked with them, admins everything.
Status changes go through :mod:`portal.services.workflow`.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import QuerySet

from portal.models import Appointment, Doctor, Profile
from portal.services import notify
from portal.services.access import ADMIN, DOCTOR, PATIENT
from portal.services.accounts import clean_text
from portal.services.workflow import available_actions, is_participant

logger = logging.getLogger(__name__)


def scoped_appointments(profile: Profile) -> QuerySet:
    qs = Appointment.objects.select_related('doctor__profile', 'patient')
    if profile.role == PATIENT:
        return qs.filter(patient_id=profile.pk)
    if profile.role == DOCTOR:
        return qs.filter(doctor_id=profile.pk)
    if profile.role == ADMIN:
        return qs
    return qs.none()


def list_appointments(profile: Profile, *, status: Optional[str] = None) -> list[Appointment]:
    qs = scoped_appointments(profile)
    if status:
        qs = qs.filter(status=status)
    return list(qs.order_by('appointment_date', 'id'))


def get_appointment(profile: Profile, appointment_id: int) -> Optional[Appointment]:
    """Return the appointment if ``profile`` may see it, else None."""
    appt = Appointment.objects.select_related('doctor__profile', 'patient').filter(pk=appointment_id).first()
    if appt is None or not is_participant(profile, appt):
        return None
    return appt


def serialize_appointment(a: Appointment, viewer: Optional[Profile] = None) -> dict:
    doctor_profile = a.doctor.profile
    return {
        'id': a.pk,
        'doctorId': a.doctor_id,
        'doctorName': doctor_profile.full_name,
        'specialty': a.doctor.specialty,
        'patientId': a.patient_id,
        'patientName': a.patient.full_name,
        'appointmentDate': a.appointment_date.isoformat(),
        'durationMinutes': a.duration_minutes,
        'status': a.status,
        'reason': a.reason,
        'notes': a.notes,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
        'actions': available_actions(viewer, a) if viewer is not None else [],
    }


def create_appointment(actor: Profile, *, doctor_id: int, appointment_date: datetime,
                       patient_id: Optional[int] = None, duration_minutes: Optional[int] = None,
                       reason: Optional[str] = None, notes: Optional[str] = None) -> Appointment:
    """Book an appointment; new appointments are always ``scheduled``.

    Patients book for themselves.  Admins book on behalf of a patient
    given by ``patient_id``.  Only verified doctors can be booked.
    """
    if actor.role == PATIENT:
        patient = actor
    elif actor.role == ADMIN:
        if not patient_id:
            raise ValueError('patientId is required')
        patient = Profile.objects.filter(pk=patient_id).first()
        if patient is None:
            raise ValueError('patient not found')
    else:
        raise PermissionError('only patients and administrators can book appointments')
    if patient.role != PATIENT:
        raise ValueError('appointments can only be booked for patients')

    doctor = Doctor.objects.select_related('profile').filter(pk=doctor_id).first()
    if doctor is None or not doctor.is_verified or doctor.profile.role != DOCTOR:
        raise ValueError('doctor is not available for booking')

    if duration_minutes is None:
        duration_minutes = settings.DEFAULT_APPOINTMENT_MINUTES
    if int(duration_minutes) <= 0:
        raise ValueError('duration must be positive')

    with transaction.atomic():
        appt = Appointment.objects.create(
            doctor=doctor,
            patient=patient,
            appointment_date=appointment_date,
            duration_minutes=int(duration_minutes),
            status=Appointment.STATUS_SCHEDULED,
            reason=clean_text(reason) or None,
            notes=clean_text(notes) or None,
        )
    logger.info('appointment %s booked d=%s p=%s by %s', appt.pk, doctor.pk, patient.pk, actor.pk)
    notify.appointment_changed(appt)
    return appt


# Fields an admin may edit directly; status is excluded
EDITABLE_FIELDS = ('appointment_date', 'duration_minutes', 'reason', 'notes')


def update_appointment(actor: Profile, appointment: Appointment, fields: dict) -> list[str]:
    if actor.role != ADMIN:
        raise PermissionError('only administrators can edit appointments')
    changed = []
    for name in EDITABLE_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if name == 'duration_minutes':
            if value is None or int(value) <= 0:
                raise ValueError('duration must be positive')
            value = int(value)
        elif name in ('reason', 'notes'):
            value = clean_text(value) or None
        elif value is None:
            raise ValueError('appointmentDate may not be empty')
        setattr(appointment, name, value)
        changed.append(name)
    if changed:
        appointment.save(update_fields=changed + ['updated_at'])
        notify.appointment_changed(appointment)
    return changed


def patients_of_doctor(doctor_profile: Profile) -> QuerySet:
    """Patients who have at least one appointment with the doctor."""
    return Profile.objects.filter(
        role=PATIENT, appointments__doctor_id=doctor_profile.pk
    ).distinct().order_by('last_name', 'first_name')
