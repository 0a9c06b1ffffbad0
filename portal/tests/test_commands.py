from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from portal.models import Appointment, Doctor, Profile, User
from portal.tests.factories import make_appointment, make_doctor, make_identity, make_patient

pytestmark = pytest.mark.django_db


def test_ensure_test_users_is_idempotent():
    call_command('ensure_test_users', stdout=StringIO())
    call_command('ensure_test_users', stdout=StringIO())
    assert Profile.objects.filter(email__endswith='@medpoint.test').count() == 3
    doc = Doctor.objects.get(profile__email='doctor@medpoint.test')
    assert doc.is_verified
    assert User.objects.get(username='patient@medpoint.test').check_password('secret1')


def test_mark_missed_appointments():
    doc, pat = make_doctor(), make_patient()
    old = make_appointment(doc, pat, when=timezone.now() - timedelta(days=1))
    upcoming = make_appointment(doc, pat)

    out = StringIO()
    call_command('mark_missed_appointments', '--dry-run', stdout=out)
    assert f'would mark {old.pk}' in out.getvalue()
    assert Appointment.objects.get(pk=old.pk).status == 'scheduled'

    call_command('mark_missed_appointments', stdout=StringIO())
    assert Appointment.objects.get(pk=old.pk).status == 'missed'
    assert Appointment.objects.get(pk=upcoming.pk).status == 'scheduled'


def test_find_orphan_identities():
    orphan = make_identity('orphan@example.com')
    make_patient()
    out = StringIO()
    call_command('find_orphan_identities', stdout=out)
    assert 'orphan@example.com' in out.getvalue()
    assert 'patient@example.com' not in out.getvalue()
    orphan.refresh_from_db()
    assert orphan.is_active

    call_command('find_orphan_identities', '--deactivate', stdout=StringIO())
    orphan.refresh_from_db()
    assert not orphan.is_active
