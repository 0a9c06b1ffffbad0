"""
Django admin registrations for the portal models.

Lets superusers inspect identities, profiles, doctors and appointments
at ``/admin/``.  Portal administrators normally work through the API;
this is for support and manual fixes.
"""

from django.contrib import admin

from .models import (
    AdminEmail,
    Appointment,
    AppointmentTransition,
    AuditEvent,
    Doctor,
    MedicalRecord,
    Profile,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'is_active', 'is_staff', 'is_superuser', 'date_joined')
    list_filter = ('is_active', 'is_staff')
    search_fields = ('username', 'email', 'first_name', 'last_name')


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'email', 'first_name', 'last_name', 'role', 'is_verified', 'created_at')
    list_filter = ('role', 'is_verified')
    search_fields = ('email', 'first_name', 'last_name', 'phone')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('profile', 'specialty', 'experience_years', 'is_verified', 'is_rejected', 'created_at')
    list_filter = ('specialty', 'is_verified', 'is_rejected')
    search_fields = ('profile__email', 'profile__first_name', 'profile__last_name', 'qualification')


class AppointmentTransitionInline(admin.TabularInline):
    model = AppointmentTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'actor', 'reason', 'timestamp')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'doctor', 'patient', 'appointment_date', 'duration_minutes', 'status')
    list_filter = ('status',)
    search_fields = ('id', 'patient__email', 'doctor__profile__email')
    inlines = [AppointmentTransitionInline]


@admin.register(AdminEmail)
class AdminEmailAdmin(admin.ModelAdmin):
    list_display = ('email', 'created_at')
    search_fields = ('email',)


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'title', 'content_type', 'size', 'created_at')
    search_fields = ('title', 'patient__email')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('action', 'user__username')
