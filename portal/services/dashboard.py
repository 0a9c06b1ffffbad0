from django.utils import timezone

from portal.models import Appointment, Doctor, MedicalRecord, Profile
from portal.services.access import ADMIN, DOCTOR, PATIENT
from portal.services.appointments import scoped_appointments
from portal.services.doctors import pending_count

UPCOMING_LIMIT = 5


def admin_stats() -> dict:
    return {
        'totalDoctors': Doctor.objects.count(),
        'pendingDoctors': pending_count(),
        'totalPatients': Profile.objects.filter(role=PATIENT).count(),
        'totalAppointments': Appointment.objects.count(),
    }


def dashboard_for(profile: Profile, now=None) -> dict:
    """Per-role counters plus the next few scheduled appointments."""
    now = now or timezone.now()
    appts = scoped_appointments(profile)
    upcoming_qs = appts.filter(status=Appointment.STATUS_SCHEDULED, appointment_date__gte=now)
    stats = {
        'upcomingAppointments': upcoming_qs.count(),
        'completedAppointments': appts.filter(status=Appointment.STATUS_COMPLETED).count(),
    }
    if profile.role == PATIENT:
        stats['medicalRecords'] = MedicalRecord.objects.filter(patient_id=profile.pk).count()
    elif profile.role == DOCTOR:
        stats['totalPatients'] = appts.values('patient_id').distinct().count()
    elif profile.role == ADMIN:
        stats.update(admin_stats())
    upcoming = list(upcoming_qs.order_by('appointment_date')[:UPCOMING_LIMIT])
    return {'role': profile.role, 'stats': stats, 'upcoming': upcoming}
