from django.core.management.base import BaseCommand
from django.utils import timezone

from portal.models import Appointment
from portal.services import notify
from portal.services.workflow import mark_missed


class Command(BaseCommand):
    help = "Mark scheduled appointments whose end time has passed as missed."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="List the appointments without changing them.")

    def handle(self, *args, **opts):
        if opts["dry_run"]:
            now = timezone.now()
            n = 0
            for appt in Appointment.objects.filter(status=Appointment.STATUS_SCHEDULED, appointment_date__lt=now):
                if appt.end_time <= now:
                    self.stdout.write(f"would mark {appt.pk} ({appt.appointment_date:%F %H:%M})")
                    n += 1
            self.stdout.write(self.style.SUCCESS(f"{n} appointment(s) would be marked missed"))
            return
        ids = mark_missed()
        for appt in Appointment.objects.filter(pk__in=ids):
            notify.appointment_changed(appt)
        self.stdout.write(self.style.SUCCESS(f"marked {len(ids)} appointment(s) missed"))
