"""
Doctor directory and patient lists.

Only verified doctors are visible in the public directory.  Doctors see
the patients that have booked with them; administrators see everyone.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.exceptions import error_response
from portal.models import Profile
from portal.permissions import IsDoctorRole, ViewAccess, profile_of
from portal.serializers.directory import DoctorListQuerySerializer, DoctorUpdateSerializer
from portal.services import appointments as appt_service
from portal.services import doctors as doctor_service
from portal.services.access import ADMIN, DOCTOR
from portal.services.audit import log_action


@api_view(['GET'])
@permission_classes([IsAuthenticated, ViewAccess('doctors')])
def list_doctors(request):
    q = DoctorListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = doctor_service.list_verified_doctors(
        specialty=q.validated_data.get('specialty'),
        q=(q.validated_data.get('q') or '').strip() or None,
    )
    return Response({'ok': True, 'data': data, 'total': len(data)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, ViewAccess('doctors')])
def doctor_detail(request, doctor_id: int):
    viewer = profile_of(request.user)
    doctor = doctor_service.get_doctor(doctor_id, include_unverified=viewer.role == ADMIN)
    if doctor is None:
        raise NotFound('doctor not found')
    return Response({'ok': True, 'data': doctor_service.serialize_doctor(doctor, private=viewer.role == ADMIN)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_update_self(request):
    """Doctors maintain their own bio, availability and qualification."""
    s = DoctorUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    profile = profile_of(request.user)
    doctor = doctor_service.get_doctor(profile.pk, include_unverified=True)
    if doctor is None:
        raise NotFound('doctor details not found')
    try:
        changed = doctor_service.update_own_doctor(doctor, **s.validated_data)
    except ValueError as e:
        return error_response('validation_error', str(e), 400)
    log_action(user=request.user, action='doctor_update', object_type='doctor', object_id=doctor.pk,
               detail={'fields': changed})
    return Response({'ok': True, 'updated': changed, 'data': doctor_service.serialize_doctor(doctor, private=True)})


def _serialize_patient(p: Profile) -> dict:
    return {
        'id': p.pk,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'name': p.full_name,
        'email': p.email,
        'phone': p.phone,
        'createdAt': p.created_at.isoformat() if p.created_at else None,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, ViewAccess('patients')])
def list_patients(request):
    viewer = profile_of(request.user)
    if viewer.role == DOCTOR:
        qs = appt_service.patients_of_doctor(viewer)
    else:
        qs = Profile.objects.filter(role='patient').order_by('last_name', 'first_name')
    data = [_serialize_patient(p) for p in qs]
    return Response({'ok': True, 'data': data, 'total': len(data)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, ViewAccess('patients')])
def patient_appointments(request, patient_id: int):
    """Appointments of one patient, limited to what the caller may see."""
    viewer = profile_of(request.user)
    patient = Profile.objects.filter(pk=patient_id, role='patient').first()
    if patient is None:
        raise NotFound('patient not found')
    qs = appt_service.scoped_appointments(viewer).filter(patient_id=patient.pk).order_by('appointment_date')
    if viewer.role == DOCTOR and not qs.exists():
        raise NotFound('patient not found')
    return Response({
        'ok': True,
        'patient': _serialize_patient(patient),
        'data': [appt_service.serialize_appointment(a, viewer) for a in qs],
    })
