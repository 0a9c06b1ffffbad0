import pytest
from rest_framework.exceptions import ValidationError
from rest_framework.authtoken.models import Token

from portal.exceptions import InvalidCredentials, ProfileMissing
from portal.models import AdminEmail, AuditEvent, Doctor, Profile
from portal.services import accounts, doctors
from portal.services import session as session_module
from portal.services.session import ProfileSnapshot, SessionManager, SessionStatus
from portal.tests.factories import PASSWORD, make_admin, make_identity, make_patient

pytestmark = pytest.mark.django_db


def recording_manager():
    seen = []
    manager = SessionManager(listeners=[lambda old, new: seen.append(new.status)])
    return manager, seen


def test_sign_up_patient_is_verified_without_doctor_row():
    profile = SessionManager(listeners=[]).sign_up('A@B.com', 'secret1', 'Ann', 'Bee')
    assert profile.role == 'patient'
    assert profile.is_verified is True
    assert profile.email == 'a@b.com'
    assert not Doctor.objects.filter(pk=profile.pk).exists()
    assert AuditEvent.objects.filter(action='signup', object_id=profile.pk).exists()


def test_sign_up_doctor_creates_unverified_profile_and_doctor():
    profile = SessionManager(listeners=[]).sign_up(
        'doc@b.com', 'secret1', 'Doc', 'Tor', role='doctor',
        qualification='MBBS', specialty='cardiology', experience_years=5,
    )
    assert profile.is_verified is False
    doctor = Doctor.objects.get(pk=profile.pk)
    assert doctor.is_verified is False
    assert doctor.specialty == 'cardiology' and doctor.experience_years == 5


def test_sign_up_doctor_without_details_writes_nothing():
    with pytest.raises(ValidationError):
        SessionManager(listeners=[]).sign_up('doc@b.com', 'secret1', 'Doc', 'Tor', role='doctor')
    assert not Profile.objects.filter(email='doc@b.com').exists()


def test_sign_up_admin_requires_allow_listed_email():
    with pytest.raises(ValidationError):
        SessionManager(listeners=[]).sign_up('boss@b.com', 'secret1', 'Bo', 'Ss', role='admin')
    AdminEmail.objects.create(email='boss@b.com')
    profile = SessionManager(listeners=[]).sign_up('boss@b.com', 'secret1', 'Bo', 'Ss', role='admin')
    assert profile.role == 'admin' and profile.is_verified


def test_sign_up_rejects_duplicate_email_and_short_password():
    make_patient('taken@b.com')
    with pytest.raises(ValidationError):
        SessionManager(listeners=[]).sign_up('TAKEN@b.com', 'secret1', 'X', 'Y')
    with pytest.raises(ValidationError):
        SessionManager(listeners=[]).sign_up('new@b.com', '123', 'X', 'Y')


def test_sign_in_walks_the_state_machine(patient):
    manager, seen = recording_manager()
    state = manager.sign_in('PATIENT@example.com', PASSWORD)
    assert seen == [SessionStatus.AUTHENTICATING, SessionStatus.AUTHENTICATED]
    assert state.role == 'patient'
    assert state.profile.email == 'patient@example.com'


def test_sign_in_failure_resets_to_unauthenticated(patient):
    manager, seen = recording_manager()
    with pytest.raises(InvalidCredentials):
        manager.sign_in('patient@example.com', 'wrong-password')
    assert manager.state.status == SessionStatus.UNAUTHENTICATED
    assert seen == [SessionStatus.AUTHENTICATING, SessionStatus.UNAUTHENTICATED]
    assert AuditEvent.objects.filter(action='signin', detail__result='fail').exists()


def test_identity_without_profile_keeps_role_unknown():
    user = make_identity('orphan@example.com')
    manager = SessionManager(listeners=[])
    state = manager.resolve(user)
    assert state.status == SessionStatus.AUTHENTICATING
    assert state.role is None
    assert state.user_id == user.pk


def test_resolve_anonymous_is_unauthenticated():
    state = SessionManager(listeners=[]).resolve(None)
    assert state.status == SessionStatus.UNAUTHENTICATED


def test_update_profile_ignores_role_and_email(patient):
    manager = SessionManager(listeners=[])
    manager.resolve(patient.user)
    snap = manager.update_profile({'first_name': 'Patricia', 'phone': '555-0100',
                                   'role': 'admin', 'email': 'evil@example.com'})
    assert snap.first_name == 'Patricia' and snap.phone == '555-0100'
    assert snap.role == 'patient' and snap.email == 'patient@example.com'
    patient.refresh_from_db()
    assert patient.role == 'patient'
    assert manager.state.profile == snap


def test_update_profile_requires_loaded_profile():
    manager = SessionManager(listeners=[])
    manager.resolve(make_identity('orphan@example.com'))
    with pytest.raises(ProfileMissing):
        manager.update_profile({'first_name': 'X'})


def test_failed_update_leaves_state_unchanged(patient):
    manager = SessionManager(listeners=[])
    manager.resolve(patient.user)
    before = manager.state
    with pytest.raises(ValidationError):
        manager.update_profile({'first_name': '   '})
    assert manager.state is before


def test_sign_out_revokes_tokens(patient):
    Token.objects.create(user=patient.user)
    manager = SessionManager(listeners=[])
    manager.resolve(patient.user)
    result = manager.sign_out()
    assert result.revoked is True
    assert manager.state.status == SessionStatus.UNAUTHENTICATED
    assert not Token.objects.filter(user=patient.user).exists()


def test_sign_out_clears_state_even_when_revocation_fails(patient, monkeypatch):
    def boom(user):
        raise RuntimeError('store unavailable')
    monkeypatch.setattr(session_module, '_revoke_tokens', boom)
    manager = SessionManager(listeners=[])
    manager.resolve(patient.user)
    result = manager.sign_out()
    assert result.revoked is False and 'store unavailable' in result.error
    assert manager.state.status == SessionStatus.UNAUTHENTICATED
    assert manager.user is None


def test_invalidate_and_unsubscribe(patient):
    manager, seen = recording_manager()
    manager.resolve(patient.user)
    seen.clear()
    unsubscribe = manager.subscribe(lambda old, new: seen.append('second'))
    unsubscribe()
    manager.invalidate()
    assert seen == [SessionStatus.UNAUTHENTICATED]


def test_default_listener_pushes_to_identity_group(patient, monkeypatch):
    pushed = []
    monkeypatch.setattr(session_module.notify, 'session_changed',
                        lambda user_id, **kw: pushed.append((user_id, kw['status'], kw['role'])))
    SessionManager().resolve(patient.user)
    assert pushed[-1] == (patient.pk, 'authenticated', 'patient')


def test_snapshot_rejects_malformed_rows():
    admin = make_admin()
    admin.role = 'superhero'
    with pytest.raises(ValueError):
        ProfileSnapshot.from_profile(admin)
    with pytest.raises(ProfileMissing):
        ProfileSnapshot.from_profile(None)


def test_doctor_rename_refreshes_directory(doctor):
    assert [d['lastName'] for d in doctors.list_verified_doctors()] == ['Heart']
    manager = SessionManager(listeners=[])
    manager.resolve(doctor.user)
    manager.update_profile({'last_name': 'Renamed'})
    assert [d['lastName'] for d in doctors.list_verified_doctors()] == ['Renamed']


def test_sign_up_race_on_email_is_a_validation_error(monkeypatch):
    make_patient('race@b.com')
    monkeypatch.setattr(accounts, 'email_taken', lambda email: False)
    with pytest.raises(ValidationError) as exc:
        SessionManager(listeners=[]).sign_up('race@b.com', 'secret1', 'R', 'Ace')
    assert 'email' in exc.value.detail
    assert Profile.objects.filter(email='race@b.com').count() == 1
