"""
Administrator console: doctor verification, role changes and the
allow-list of emails that may register as administrators.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.exceptions import error_response
from portal.models import Doctor, Profile
from portal.permissions import IsAdminRole, profile_of
from portal.serializers.directory import (
    AdminDoctorQuerySerializer,
    AdminEmailSerializer,
    RoleSerializer,
    VerifySerializer,
)
from portal.services import accounts
from portal.services import doctors as doctor_service
from portal.services.audit import log_action


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_doctors(request):
    """All doctors, unverified first; optional ``state`` filter."""
    q = AdminDoctorQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = doctor_service.list_all_doctors(state=q.validated_data.get('state'))
    return Response({
        'ok': True,
        'data': [doctor_service.serialize_doctor(d, private=True) for d in items],
        'pending': doctor_service.pending_count(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_verify_doctor(request, doctor_id: int):
    s = VerifySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    approved = s.validated_data['approved']
    try:
        doctor = doctor_service.set_verification(doctor_id, approved=approved)
    except Doctor.DoesNotExist:
        raise NotFound('doctor not found')
    log_action(user=request.user, action='doctor_verify', object_type='doctor', object_id=doctor.pk,
               detail={'approved': approved})
    return Response({'ok': True, 'data': doctor_service.serialize_doctor(doctor, private=True)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_revoke_doctor(request, doctor_id: int):
    try:
        doctor = doctor_service.revoke_verification(doctor_id)
    except Doctor.DoesNotExist:
        raise NotFound('doctor not found')
    log_action(user=request.user, action='doctor_revoke', object_type='doctor', object_id=doctor.pk)
    return Response({'ok': True, 'data': doctor_service.serialize_doctor(doctor, private=True)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_set_role(request, profile_id: int):
    s = RoleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    role = s.validated_data['role']
    try:
        profile = doctor_service.set_role(profile_id, role, acting_profile=profile_of(request.user))
    except Profile.DoesNotExist:
        raise NotFound('profile not found')
    except PermissionError as e:
        return error_response('forbidden', str(e), 403)
    except ValueError as e:
        return error_response('validation_error', str(e), 400)
    log_action(user=request.user, action='role_change', object_type='profile', object_id=profile.pk,
               detail={'role': role})
    return Response({'ok': True, 'id': profile.pk, 'role': profile.role})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_emails(request):
    if request.method == 'GET':
        data = [
            {'id': e.pk, 'email': e.email, 'createdAt': e.created_at.isoformat()}
            for e in accounts.list_admin_emails()
        ]
        return Response({'ok': True, 'data': data})
    s = AdminEmailSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        entry = accounts.add_admin_email(s.validated_data['email'])
    except ValueError as e:
        return error_response('validation_error', str(e), 400)
    log_action(user=request.user, action='admin_email_add', object_type='admin_email', object_id=entry.pk,
               detail={'email': entry.email})
    return Response({'ok': True, 'id': entry.pk, 'email': entry.email}, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_email_delete(request, entry_id: int):
    if not accounts.remove_admin_email(entry_id):
        raise NotFound('admin email not found')
    log_action(user=request.user, action='admin_email_remove', object_type='admin_email', object_id=entry_id)
    return Response({'ok': True})
