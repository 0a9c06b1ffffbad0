"""
Appointment endpoints.

Listing and detail are scoped by role.  Status changes are validated
against the workflow table; every serialized appointment carries the
``actions`` the caller may take next so that clients never offer an
action the server would refuse.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.exceptions import TransitionNotAllowed, error_response
from portal.permissions import IsAdminRole, ViewAccess, profile_of
from portal.serializers.appointments import (
    AppointmentCreateSerializer,
    AppointmentListQuerySerializer,
    AppointmentStatusSerializer,
    AppointmentUpdateSerializer,
)
from portal.services import appointments as appt_service
from portal.services import notify
from portal.services.audit import log_action
from portal.services.workflow import transition_appointment


def _scoped_or_404(profile, appointment_id: int):
    appt = appt_service.get_appointment(profile, appointment_id)
    if appt is None:
        raise NotFound('appointment not found')
    return appt


@api_view(['GET'])
@permission_classes([IsAuthenticated, ViewAccess('appointments')])
def list_appointments(request):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    viewer = profile_of(request.user)
    items = appt_service.list_appointments(viewer, status=q.validated_data.get('status'))
    return Response({'ok': True, 'data': [appt_service.serialize_appointment(a, viewer) for a in items]})


@api_view(['POST'])
@permission_classes([IsAuthenticated, ViewAccess('appointments.new')])
def create_appointment(request):
    s = AppointmentCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    actor = profile_of(request.user)
    try:
        appt = appt_service.create_appointment(
            actor,
            doctor_id=vd['doctorId'],
            patient_id=vd.get('patientId'),
            appointment_date=vd['appointmentDate'],
            duration_minutes=vd.get('durationMinutes'),
            reason=vd.get('reason'),
            notes=vd.get('notes'),
        )
    except PermissionError as e:
        return error_response('forbidden', str(e), 403)
    except ValueError as e:
        return error_response('validation_error', str(e), 400)
    log_action(user=request.user, action='appointment_create', object_type='appointment', object_id=appt.pk,
               detail={'doctorId': appt.doctor_id, 'patientId': appt.patient_id})
    return Response({'ok': True, 'data': appt_service.serialize_appointment(appt, actor)}, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, ViewAccess('appointments')])
def appointment_detail(request, appointment_id: int):
    viewer = profile_of(request.user)
    appt = _scoped_or_404(viewer, appointment_id)
    data = appt_service.serialize_appointment(appt, viewer)
    data['transitions'] = [
        {
            'from': t.from_status,
            'to': t.to_status,
            'actorId': t.actor_id,
            'reason': t.reason,
            'at': t.timestamp.isoformat(),
        }
        for t in appt.transitions.order_by('timestamp', 'id')
    ]
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, ViewAccess('appointments')])
def appointment_update_status(request, appointment_id: int):
    """Move an appointment along the workflow (complete, cancel, reschedule)."""
    s = AppointmentStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    actor = profile_of(request.user)
    appt = _scoped_or_404(actor, appointment_id)
    try:
        appt, changed = transition_appointment(
            appt, vd['status'], actor_profile=actor,
            reason=vd.get('reason') or '',
            appointment_date=vd.get('appointmentDate'),
        )
    except PermissionError as e:
        return error_response('forbidden', str(e), 403)
    except TransitionNotAllowed as e:
        return error_response('transition_not_allowed', str(e), 400)
    except ValueError as e:
        return error_response('validation_error', str(e), 400)
    if changed:
        log_action(user=request.user, action='appointment_status', object_type='appointment', object_id=appt.pk,
                   detail={'to': appt.status, 'reason': vd.get('reason') or ''})
        notify.appointment_changed(appt)
    return Response({'ok': True, 'changed': changed, 'data': appt_service.serialize_appointment(appt, actor)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def appointment_update(request, appointment_id: int):
    """Administrative edit of date, duration, reason and notes."""
    s = AppointmentUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    actor = profile_of(request.user)
    appt = _scoped_or_404(actor, appointment_id)
    try:
        changed = appt_service.update_appointment(actor, appt, s.to_fields())
    except PermissionError as e:
        return error_response('forbidden', str(e), 403)
    except ValueError as e:
        return error_response('validation_error', str(e), 400)
    if changed:
        log_action(user=request.user, action='appointment_update', object_type='appointment', object_id=appt.pk,
                   detail={'fields': changed})
    return Response({'ok': True, 'updated': changed, 'data': appt_service.serialize_appointment(appt, actor)})
