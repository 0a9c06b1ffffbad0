from django.core.management.base import BaseCommand

from portal.models import User


class Command(BaseCommand):
    help = "List identities without a profile (role unknown). --deactivate disables them."

    def add_arguments(self, parser):
        parser.add_argument("--deactivate", action="store_true")

    def handle(self, *args, **opts):
        # Superusers are managed through /admin/ and may legitimately lack a profile
        orphans = User.objects.filter(profile__isnull=True, is_superuser=False).order_by("id")
        count = 0
        for u in orphans:
            self.stdout.write(f"{u.pk}\t{u.username}\tactive={u.is_active}\tjoined={u.date_joined:%F}")
            count += 1
        if opts["deactivate"] and count:
            n = orphans.filter(is_active=True).update(is_active=False)
            self.stdout.write(self.style.WARNING(f"deactivated {n} identit{'y' if n == 1 else 'ies'}"))
        self.stdout.write(self.style.SUCCESS(f"{count} orphan identit{'y' if count == 1 else 'ies'}"))
