"""
Database models for the MedPoint portal.

The identity (``User``) is kept apart from the ``Profile`` that carries
the portal role so that an identity can exist before (or without) its
profile.  Doctors extend a profile one-to-one, and appointments link a
doctor with a patient profile.  Status changes of appointments are kept
as an append-only transition trail.
"""
from __future__ import annotations

import os
import uuid
from datetime import timedelta

from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator
from django.db import models


class User(AbstractUser):
    """Authentication identity.

    ``username`` holds the lower-cased email address.  Portal specific
    data (names, phone, role) lives on :class:`Profile`.
    """

    def __str__(self) -> str:
        return self.username


class Profile(models.Model):
    """Portal profile of an identity; ``id`` equals the identity id."""
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_ADMIN, 'Administrator'),
    ]

    user = models.OneToOneField(
        User, primary_key=True, on_delete=models.CASCADE, related_name='profile'
    )
    email = models.EmailField(max_length=254)
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    phone = models.CharField(max_length=32, blank=True, null=True)
    # Filtered on by every directory and dashboard count
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    is_verified = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name or self.email} ({self.role})"


class Doctor(models.Model):
    """Professional details of a doctor profile."""
    SPECIALTY_CHOICES = [
        ('cardiology', 'Cardiology'),
        ('dermatology', 'Dermatology'),
        ('neurology', 'Neurology'),
        ('orthopedics', 'Orthopedics'),
        ('pediatrics', 'Pediatrics'),
        ('psychiatry', 'Psychiatry'),
        ('gynecology', 'Gynecology'),
        ('ophthalmology', 'Ophthalmology'),
        ('general', 'General'),
    ]

    profile = models.OneToOneField(
        Profile, primary_key=True, on_delete=models.CASCADE, related_name='doctor'
    )
    qualification = models.CharField(max_length=255)
    specialty = models.CharField(max_length=20, choices=SPECIALTY_CHOICES, db_index=True)
    experience_years = models.PositiveIntegerField(default=0)
    # Public directory only lists verified doctors
    is_verified = models.BooleanField(default=False, db_index=True)
    is_rejected = models.BooleanField(default=False)
    bio = models.TextField(blank=True, null=True)
    availability = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Dr. {self.profile.full_name} ({self.specialty})"


class Appointment(models.Model):
    STATUS_SCHEDULED = 'scheduled'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_MISSED = 'missed'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_MISSED, 'Missed'),
    ]

    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='appointments')
    patient = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='appointments')
    appointment_date = models.DateTimeField()
    duration_minutes = models.PositiveIntegerField(default=30, validators=[MinValueValidator(1)])
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
    reason = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'appointment_date'], name='portal_appt_doctor_date_idx'),
            models.Index(fields=['patient', 'appointment_date'], name='portal_appt_patient_date_idx'),
        ]

    @property
    def end_time(self):
        return self.appointment_date + timedelta(minutes=self.duration_minutes)

    def __str__(self) -> str:
        return f"Appointment {self.id} d={self.doctor_id} p={self.patient_id} ({self.status})"


class AppointmentTransition(models.Model):
    """Records a status transition for an appointment."""
    appointment = models.ForeignKey(Appointment, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=10)
    to_status = models.CharField(max_length=10)
    # Null for out-of-band (system) transitions
    actor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointment_transitions'
    )
    reason = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.appointment_id}: {self.from_status} → {self.to_status}"


class AdminEmail(models.Model):
    """Allow-list of emails that may register with the admin role."""
    email = models.EmailField(max_length=254, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.email


def _record_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    return f"records/{instance.patient_id}/{uuid.uuid4().hex}{ext}"


class MedicalRecord(models.Model):
    patient = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='medical_records')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    file = models.FileField(upload_to=_record_upload, max_length=512, blank=True)
    content_type = models.CharField(max_length=128, blank=True, null=True)
    size = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'created_at'], name='portal_record_patient_idx')]

    def __str__(self) -> str:
        return f"{self.title} (p={self.patient_id})"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='portal_audit_action_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='portal_audit_object_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
