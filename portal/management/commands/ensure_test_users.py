# portal/management/commands/ensure_test_users.py
from django.core.management.base import BaseCommand
from django.db import transaction

from portal.models import AdminEmail, Doctor, Profile, User

PASSWORD = "secret1"

TEST_SET = [
    ("admin@medpoint.test", "admin", "Ada", "Admin"),
    ("doctor@medpoint.test", "doctor", "Derek", "Doctor"),
    ("patient@medpoint.test", "patient", "Paula", "Patient"),
]


class Command(BaseCommand):
    help = "Ensure one verified test account per role exists with password=secret1 (idempotent)."

    @transaction.atomic
    def handle(self, *args, **opts):
        for email, role, first, last in TEST_SET:
            u, created = User.objects.get_or_create(
                username=email,
                defaults={"email": email, "first_name": first, "last_name": last, "is_active": True},
            )
            # Reset password and activation on every run
            u.set_password(PASSWORD)
            u.is_active = True
            u.save(update_fields=["password", "is_active"])

            profile, _ = Profile.objects.update_or_create(
                user=u,
                defaults={"email": email, "first_name": first, "last_name": last, "role": role, "is_verified": True},
            )
            if role == "admin":
                AdminEmail.objects.get_or_create(email=email)
            if role == "doctor":
                Doctor.objects.update_or_create(
                    profile=profile,
                    defaults={
                        "qualification": "MBBS",
                        "specialty": "general",
                        "experience_years": 5,
                        "is_verified": True,
                        "is_rejected": False,
                    },
                )
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role}){' created' if created else ''}"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
