"""
URL mappings for the portal API.

Trailing slashes are deliberately omitted (``APPEND_SLASH`` is off).
"""
from django.urls import path, include

from .auth_views import (
    access_view,
    profile_update_view,
    profile_view,
    refresh_view,
    session_view,
    signin_view,
    signout_view,
    signup_view,
)
from .views import health
from .views.admin_console import (
    admin_doctors,
    admin_email_delete,
    admin_emails,
    admin_revoke_doctor,
    admin_set_role,
    admin_verify_doctor,
)
from .views.appointments import (
    appointment_detail,
    appointment_update,
    appointment_update_status,
    create_appointment,
    list_appointments,
)
from .views.dashboard import admin_dashboard, dashboard
from .views.directory import (
    doctor_detail,
    doctor_update_self,
    list_doctors,
    list_patients,
    patient_appointments,
)
from .views.records import create_record, list_records

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    # Authentication and session
    path('api/auth/signin', signin_view, name='signin_view'),
    path('api/auth/signup', signup_view, name='signup_view'),
    path('api/auth/signout', signout_view, name='signout_view'),
    path('api/auth/refresh', refresh_view, name='refresh_view'),
    path('api/auth/session', session_view, name='session_view'),
    path('api/profile', profile_view, name='profile_view'),
    path('api/profile/update', profile_update_view, name='profile_update_view'),
    path('api/access', access_view, name='access_view'),

    # Doctor directory and patients
    path('api/doctors', list_doctors, name='list_doctors'),
    path('api/doctors/me/update', doctor_update_self, name='doctor_update_self'),
    path('api/doctors/<int:doctor_id>', doctor_detail, name='doctor_detail'),
    path('api/patients', list_patients, name='list_patients'),
    path('api/patients/<int:patient_id>/appointments', patient_appointments, name='patient_appointments'),

    # Appointments
    path('api/appointments', list_appointments, name='list_appointments'),
    path('api/appointments/create', create_appointment, name='create_appointment'),
    path('api/appointments/<int:appointment_id>', appointment_detail, name='appointment_detail'),
    path('api/appointments/<int:appointment_id>/status', appointment_update_status, name='appointment_update_status'),
    path('api/appointments/<int:appointment_id>/update', appointment_update, name='appointment_update'),

    # Dashboard
    path('api/dashboard', dashboard, name='dashboard'),

    # Admin console
    path('api/admin/stats', admin_dashboard, name='admin_dashboard'),
    path('api/admin/doctors', admin_doctors, name='admin_doctors'),
    path('api/admin/doctors/<int:doctor_id>/verify', admin_verify_doctor, name='admin_verify_doctor'),
    path('api/admin/doctors/<int:doctor_id>/revoke', admin_revoke_doctor, name='admin_revoke_doctor'),
    path('api/admin/users/<int:profile_id>/role', admin_set_role, name='admin_set_role'),
    path('api/admin/emails', admin_emails, name='admin_emails'),
    path('api/admin/emails/<int:entry_id>/delete', admin_email_delete, name='admin_email_delete'),

    # Medical records
    path('api/records', list_records, name='list_records'),
    path('api/records/create', create_record, name='create_record'),
]
