"""
Integration tests for the portal API.

These exercise the main user journeys end to end: sign-up and sign-in,
the doctor verification gate, booking and the appointment workflow,
and role based access to every area of the portal.

To run the tests:

```
pytest -q portal/tests
```
"""
from datetime import timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient, APITestCase

from ..models import Appointment, Doctor, Profile, User
from ..services.access import decide_access
from .factories import PASSWORD, make_admin, make_appointment, make_doctor, make_identity, make_patient


class PortalAPITests(APITestCase):
    def setUp(self) -> None:
        self.admin = make_admin()
        self.doctor = make_doctor()
        self.patient = make_patient()
        self.client = APIClient()

    def as_user(self, profile_or_user) -> APIClient:
        user = profile_or_user.user if isinstance(profile_or_user, Profile) else profile_or_user
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    # ------------------------------------------------------------------
    # Sign-up / sign-in
    # ------------------------------------------------------------------
    def test_patient_signup_lands_on_dashboard(self) -> None:
        resp = self.client.post(reverse('signup_view'), {
            'email': 'a@b.com', 'password': 'secret1', 'confirmPassword': 'secret1',
            'firstName': 'Ann', 'lastName': 'Bee',
        }, format='json')
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data['role'], 'patient')
        self.assertTrue(resp.data['isVerified'])
        profile = Profile.objects.get(email='a@b.com')
        self.assertFalse(Doctor.objects.filter(pk=profile.pk).exists())

        self.assertTrue(resp.data['token'])
        session = resp.data['session']
        self.assertEqual(session['status'], 'authenticated')
        self.assertTrue(decide_access(session['role'], 'dashboard').allowed)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {resp.data['token']}")
        self.assertEqual(self.client.get(reverse('dashboard')).status_code, 200)

        self.client.credentials()
        resp = self.client.post(reverse('signin_view'), {'email': 'a@b.com', 'password': 'secret1'}, format='json')
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertTrue(resp.data['token'])
        self.assertTrue(resp.data['jwt_access'])
        session = resp.data['session']
        self.assertEqual(session['status'], 'authenticated')
        self.assertEqual(session['role'], 'patient')
        self.assertIn('doctors', session['views'])
        self.assertNotIn('admin', session['views'])

    def test_signup_password_mismatch_creates_nothing(self) -> None:
        resp = self.client.post(reverse('signup_view'), {
            'email': 'x@b.com', 'password': 'secret1', 'confirmPassword': 'secret2',
            'firstName': 'X', 'lastName': 'Y',
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['error']['code'], 'validation_error')
        self.assertFalse(User.objects.filter(username='x@b.com').exists())

    def test_signin_wrong_password(self) -> None:
        resp = self.client.post(reverse('signin_view'), {'email': 'patient@example.com', 'password': 'nope'},
                                format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['error']['code'], 'invalid_credentials')

    def test_token_and_jwt_both_authenticate(self) -> None:
        resp = self.client.post(reverse('signin_view'), {'email': 'doctor@example.com', 'password': PASSWORD},
                                format='json')
        token, jwt_access = resp.data['token'], resp.data['jwt_access']

        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        self.assertEqual(client.get(reverse('session_view')).data['session']['role'], 'doctor')

        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {jwt_access}")
        self.assertEqual(client.get(reverse('profile_view')).data['profile']['email'], 'doctor@example.com')

    # ------------------------------------------------------------------
    # Doctor directory gate
    # ------------------------------------------------------------------
    def test_unverified_doctor_hidden_until_admin_verifies(self) -> None:
        resp = self.client.post(reverse('signup_view'), {
            'email': 'new-doc@b.com', 'password': 'secret1', 'confirmPassword': 'secret1',
            'firstName': 'New', 'lastName': 'Doc', 'role': 'doctor',
            'qualification': 'MBBS', 'specialty': 'cardiology', 'experienceYears': 5,
        }, format='json')
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertTrue(resp.data['pendingVerification'])
        self.assertNotIn('token', resp.data)
        new_id = resp.data['id']

        patient_client = self.as_user(self.patient)
        ids = [d['id'] for d in patient_client.get(reverse('list_doctors')).data['data']]
        self.assertNotIn(new_id, ids)
        self.assertIn(self.doctor.pk, ids)

        admin_client = self.as_user(self.admin)
        pending_before = admin_client.get(reverse('admin_dashboard')).data['pendingDoctors']
        admin_doctors = admin_client.get(reverse('admin_doctors')).data['data']
        self.assertEqual(admin_doctors[0]['id'], new_id)

        resp = admin_client.post(reverse('admin_verify_doctor', args=[new_id]), {'approved': True}, format='json')
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertTrue(Profile.objects.get(pk=new_id).is_verified)
        self.assertEqual(admin_client.get(reverse('admin_dashboard')).data['pendingDoctors'], pending_before - 1)

        ids = [d['id'] for d in patient_client.get(reverse('list_doctors')).data['data']]
        self.assertIn(new_id, ids)

    def test_rejected_doctor_stays_out_of_directory(self) -> None:
        pending = make_doctor('pending@example.com', verified=False)
        admin_client = self.as_user(self.admin)
        resp = admin_client.post(reverse('admin_verify_doctor', args=[pending.pk]), {'approved': False}, format='json')
        self.assertTrue(resp.data['data']['isRejected'])
        ids = [d['id'] for d in self.as_user(self.patient).get(reverse('list_doctors')).data['data']]
        self.assertNotIn(pending.pk, ids)

    def test_directory_filters_by_specialty(self) -> None:
        make_doctor('derm@example.com', specialty='dermatology', first_name='Skin', last_name='Deep')
        client = self.as_user(self.patient)
        data = client.get(reverse('list_doctors'), {'specialty': 'dermatology'}).data['data']
        self.assertEqual([d['specialty'] for d in data], ['dermatology'])
        data = client.get(reverse('list_doctors'), {'q': 'heart'}).data['data']
        self.assertEqual([d['id'] for d in data], [self.doctor.pk])

    # ------------------------------------------------------------------
    # Booking and the status workflow
    # ------------------------------------------------------------------
    def test_patient_books_with_verified_doctor_only(self) -> None:
        client = self.as_user(self.patient)
        when = (timezone.now() + timedelta(days=2)).isoformat()
        resp = client.post(reverse('create_appointment'), {
            'doctorId': self.doctor.pk, 'appointmentDate': when, 'reason': 'checkup',
            'patientId': self.admin.pk,
        }, format='json')
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data['data']['status'], 'scheduled')
        self.assertEqual(resp.data['data']['durationMinutes'], 30)
        # patients always book for themselves
        self.assertEqual(resp.data['data']['patientId'], self.patient.pk)
        self.assertEqual(resp.data['data']['actions'], ['cancel'])

        pending = make_doctor('pending@example.com', verified=False)
        resp = client.post(reverse('create_appointment'), {'doctorId': pending.pk, 'appointmentDate': when},
                           format='json')
        self.assertEqual(resp.status_code, 400)

    def test_non_positive_duration_rejected(self) -> None:
        resp = self.as_user(self.patient).post(reverse('create_appointment'), {
            'doctorId': self.doctor.pk, 'appointmentDate': timezone.now().isoformat(), 'durationMinutes': 0,
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Appointment.objects.exists())

    def test_doctor_cannot_book(self) -> None:
        resp = self.as_user(self.doctor).post(reverse('create_appointment'), {
            'doctorId': self.doctor.pk, 'appointmentDate': timezone.now().isoformat(),
        }, format='json')
        self.assertEqual(resp.status_code, 403)

    def test_admin_books_on_behalf_of_patient(self) -> None:
        resp = self.as_user(self.admin).post(reverse('create_appointment'), {
            'doctorId': self.doctor.pk, 'patientId': self.patient.pk,
            'appointmentDate': (timezone.now() + timedelta(days=1)).isoformat(), 'durationMinutes': 45,
        }, format='json')
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data['data']['patientId'], self.patient.pk)
        self.assertEqual(resp.data['data']['durationMinutes'], 45)

    def test_doctor_completes_and_second_completion_is_noop(self) -> None:
        appt = make_appointment(self.doctor, self.patient)
        client = self.as_user(self.doctor)
        url = reverse('appointment_update_status', args=[appt.pk])
        resp = client.post(url, {'status': 'completed'}, format='json')
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertTrue(resp.data['changed'])
        self.assertEqual(resp.data['data']['actions'], [])

        resp = client.post(url, {'status': 'completed'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.data['changed'])
        self.assertEqual(appt.transitions.count(), 1)

        resp = self.as_user(self.patient).post(url, {'status': 'cancelled'}, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['error']['code'], 'transition_not_allowed')

    def test_patient_cancels_then_reschedules(self) -> None:
        appt = make_appointment(self.doctor, self.patient)
        client = self.as_user(self.patient)
        url = reverse('appointment_update_status', args=[appt.pk])
        resp = client.post(url, {'status': 'cancelled', 'reason': 'sick'}, format='json')
        self.assertEqual(resp.data['data']['status'], 'cancelled')
        self.assertEqual(resp.data['data']['actions'], ['reschedule'])
        new_date = timezone.now() + timedelta(days=5)
        resp = client.post(url, {'status': 'scheduled', 'appointmentDate': new_date.isoformat()}, format='json')
        self.assertEqual(resp.status_code, 200, resp.data)
        appt.refresh_from_db()
        self.assertEqual(appt.status, 'scheduled')
        self.assertEqual(appt.appointment_date.replace(microsecond=0), new_date.replace(microsecond=0))

        detail = client.get(reverse('appointment_detail', args=[appt.pk])).data['data']
        self.assertEqual([t['to'] for t in detail['transitions']], ['cancelled', 'scheduled'])

    def test_missed_is_not_user_requestable(self) -> None:
        appt = make_appointment(self.doctor, self.patient)
        resp = self.as_user(self.admin).post(reverse('appointment_update_status', args=[appt.pk]),
                                             {'status': 'missed'}, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_appointment_lists_are_scoped(self) -> None:
        other_patient = make_patient('other@example.com')
        other_doctor = make_doctor('other-doc@example.com')
        mine = make_appointment(self.doctor, self.patient)
        theirs = make_appointment(other_doctor, other_patient)

        ids = [a['id'] for a in self.as_user(self.patient).get(reverse('list_appointments')).data['data']]
        self.assertEqual(ids, [mine.pk])
        ids = [a['id'] for a in self.as_user(other_doctor).get(reverse('list_appointments')).data['data']]
        self.assertEqual(ids, [theirs.pk])
        ids = [a['id'] for a in self.as_user(self.admin).get(reverse('list_appointments')).data['data']]
        self.assertCountEqual(ids, [mine.pk, theirs.pk])

        resp = self.as_user(self.patient).get(reverse('appointment_detail', args=[theirs.pk]))
        self.assertEqual(resp.status_code, 404)

    def test_admin_edits_appointment(self) -> None:
        appt = make_appointment(self.doctor, self.patient)
        resp = self.as_user(self.admin).post(reverse('appointment_update', args=[appt.pk]),
                                             {'durationMinutes': 60, 'notes': 'bring results', 'status': 'completed'},
                                             format='json')
        self.assertEqual(resp.status_code, 200, resp.data)
        appt.refresh_from_db()
        self.assertEqual(appt.duration_minutes, 60)
        self.assertEqual(appt.status, 'scheduled')
        resp = self.as_user(self.doctor).post(reverse('appointment_update', args=[appt.pk]),
                                              {'notes': 'x'}, format='json')
        self.assertEqual(resp.status_code, 403)

    # ------------------------------------------------------------------
    # Role based access
    # ------------------------------------------------------------------
    def test_view_table_enforced_on_endpoints(self) -> None:
        self.assertEqual(self.as_user(self.doctor).get(reverse('list_doctors')).status_code, 403)
        self.assertEqual(self.as_user(self.patient).get(reverse('list_patients')).status_code, 403)
        self.assertEqual(self.as_user(self.patient).get(reverse('admin_dashboard')).status_code, 403)
        self.assertEqual(self.as_user(self.doctor).get(reverse('list_patients')).status_code, 200)
        self.assertEqual(self.as_user(self.admin).get(reverse('admin_doctors')).status_code, 200)
        self.assertEqual(self.client.get(reverse('list_appointments')).status_code, 401)

    def test_identity_without_profile_is_pending_not_denied(self) -> None:
        orphan = make_identity('orphan@example.com')
        client = self.as_user(orphan)
        resp = client.get(reverse('list_appointments'))
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.data['error']['code'], 'profile_pending')
        resp = client.get(reverse('access_view'), {'view': 'dashboard'})
        self.assertEqual(resp.data['decision'], 'loading')

    def test_access_endpoint(self) -> None:
        resp = self.client.get(reverse('access_view'), {'view': 'dashboard'})
        self.assertEqual((resp.data['decision'], resp.data['redirectTo']), ('redirect', 'auth'))
        resp = self.as_user(self.patient).get(reverse('access_view'), {'view': 'admin'})
        self.assertEqual((resp.data['decision'], resp.data['redirectTo']), ('redirect', 'unauthorized'))
        resp = self.as_user(self.admin).get(reverse('access_view'), {'view': 'admin'})
        self.assertEqual(resp.data['decision'], 'allow')
        self.assertEqual(self.client.get(reverse('access_view')).status_code, 400)

    def test_doctor_sees_only_own_patients(self) -> None:
        make_patient('stranger@example.com')
        make_appointment(self.doctor, self.patient)
        data = self.as_user(self.doctor).get(reverse('list_patients')).data['data']
        self.assertEqual([p['id'] for p in data], [self.patient.pk])
        data = self.as_user(self.admin).get(reverse('list_patients')).data['data']
        self.assertEqual(len(data), 2)

    def test_dashboard_per_role(self) -> None:
        make_appointment(self.doctor, self.patient)
        make_appointment(self.doctor, self.patient, status='completed',
                         when=timezone.now() - timedelta(days=1))
        data = self.as_user(self.patient).get(reverse('dashboard')).data
        self.assertEqual(data['stats']['upcomingAppointments'], 1)
        self.assertEqual(data['stats']['completedAppointments'], 1)
        self.assertEqual(len(data['upcoming']), 1)
        data = self.as_user(self.doctor).get(reverse('dashboard')).data
        self.assertEqual(data['stats']['totalPatients'], 1)
        data = self.as_user(self.admin).get(reverse('dashboard')).data
        self.assertEqual(data['stats']['totalAppointments'], 2)

