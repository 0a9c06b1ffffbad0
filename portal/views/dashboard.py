"""
Dashboard endpoints.

``/api/dashboard`` returns counters for the caller's role and the next
few scheduled appointments.  ``/api/admin/stats`` is the administrator
overview used by the admin console.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsAdminRole, ViewAccess, profile_of
from ..services.appointments import serialize_appointment
from ..services.dashboard import admin_stats, dashboard_for


@api_view(['GET'])
@permission_classes([IsAuthenticated, ViewAccess('dashboard')])
def dashboard(request):
    profile = profile_of(request.user)
    data = dashboard_for(profile)
    return Response({
        'ok': True,
        'role': data['role'],
        'stats': data['stats'],
        'upcoming': [serialize_appointment(a, profile) for a in data['upcoming']],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_dashboard(request):
    return Response({'ok': True, **admin_stats()})
