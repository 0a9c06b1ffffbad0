import logging
from typing import Optional

from django.conf import settings
from django.db.models import QuerySet

from portal.models import Appointment, MedicalRecord, Profile
from portal.services.access import ADMIN, DOCTOR, PATIENT
from portal.services.accounts import clean_text

logger = logging.getLogger(__name__)


def scoped_records(profile: Profile) -> QuerySet:
    """Patients see their own records; doctors those of patients they treated."""
    qs = MedicalRecord.objects.select_related('patient')
    if profile.role == PATIENT:
        return qs.filter(patient_id=profile.pk)
    if profile.role == DOCTOR:
        treated = Appointment.objects.filter(
            doctor_id=profile.pk, status=Appointment.STATUS_COMPLETED
        ).values('patient_id')
        return qs.filter(patient_id__in=treated)
    if profile.role == ADMIN:
        return qs
    return qs.none()


def _check_upload(f) -> None:
    max_bytes = settings.UPLOAD_MAX_MB * 1024 * 1024
    if f.size > max_bytes:
        raise ValueError(f'file exceeds {settings.UPLOAD_MAX_MB} MB')
    content_type = getattr(f, 'content_type', '') or ''
    if not any(content_type.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES if prefix):
        raise ValueError(f'file type {content_type or "unknown"} is not allowed')


def create_record(patient: Profile, *, title: str, description: Optional[str] = None, file=None) -> MedicalRecord:
    if patient.role != PATIENT:
        raise PermissionError('only patients can upload medical records')
    title = clean_text(title)
    if not title:
        raise ValueError('title is required')
    record = MedicalRecord(patient=patient, title=title, description=clean_text(description))
    if file is not None:
        _check_upload(file)
        record.file = file
        record.content_type = getattr(file, 'content_type', None)
        record.size = file.size
    record.save()
    logger.info('record %s uploaded by %s', record.pk, patient.pk)
    return record


def serialize_record(r: MedicalRecord) -> dict:
    return {
        'id': r.pk,
        'patientId': r.patient_id,
        'patientName': r.patient.full_name,
        'title': r.title,
        'description': r.description,
        'fileUrl': r.file.url if r.file else None,
        'contentType': r.content_type,
        'size': r.size,
        'createdAt': r.created_at.isoformat() if r.created_at else None,
    }
