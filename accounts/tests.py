from unittest.mock import patch

from django.contrib.auth.models import AnonymousUser
from django.contrib.messages import get_messages
from django.db import DatabaseError
from django.test import TestCase, Client, RequestFactory
from django.urls import reverse

from appointments.models import Appointment
from doctors.models import Doctor
from .identity import Identity, UNAUTHENTICATED, identity_for
from .models import User, Role


def make_user(email, role, **extra):
    return User.objects.create_user(
        username=email, email=email, password='pass1234', role=role, full_name=extra.pop('full_name', 'Test User'),
        **extra
    )


class BrokenUser:
    """Session user whose lazy load fails, as when the user table is unreachable."""

    @property
    def is_authenticated(self):
        raise DatabaseError('user table unavailable')


class IdentityTests(TestCase):

    def test_from_authenticated_user(self):
        user = make_user('pat@test.com', Role.PATIENT)
        identity = Identity.from_user(user)
        self.assertEqual(identity, Identity(user_id=user.pk, role=Role.PATIENT))
        self.assertTrue(identity.is_authenticated)
        self.assertTrue(identity.is_patient)
        self.assertFalse(identity.is_doctor)

    def test_anonymous_and_blocked_are_unauthenticated(self):
        self.assertIs(Identity.from_user(AnonymousUser()), UNAUTHENTICATED)
        self.assertIs(Identity.from_user(None), UNAUTHENTICATED)
        blocked = make_user('blocked@test.com', Role.PATIENT, is_active=False)
        self.assertIs(Identity.from_user(blocked), UNAUTHENTICATED)
        self.assertFalse(UNAUTHENTICATED.is_authenticated)

    def test_failing_identity_provider_degrades_to_unauthenticated(self):
        request = RequestFactory().get('/')
        request.user = BrokenUser()
        with self.assertLogs('accounts.identity', level='ERROR'):
            self.assertIs(identity_for(request), UNAUTHENTICATED)

    def test_unknown_stored_role_is_unauthenticated(self):
        user = make_user('odd@test.com', 'nurse')
        with self.assertLogs('accounts.identity', level='ERROR'):
            self.assertIs(Identity.from_user(user), UNAUTHENTICATED)

    def test_unknown_stored_role_does_not_break_pages(self):
        user = make_user('odd@test.com', 'nurse')
        client = Client()
        client.force_login(user)
        with self.assertLogs('accounts.identity', level='ERROR'):
            response = client.get(reverse('accounts:login'))
        self.assertEqual(response.status_code, 200)


class RegistrationTests(TestCase):

    def setUp(self):
        self.client = Client()

    def base_data(self, **overrides):
        data = {
            'role': 'patient',
            'full_name': 'Pat Patient',
            'email': 'Pat@Test.com',
            'phone': '555-0100',
            'password1': 'secret-pass-42',
            'password2': 'secret-pass-42',
        }
        data.update(overrides)
        return data

    def test_patient_registration(self):
        response = self.client.post(reverse('accounts:register'), data=self.base_data())
        self.assertRedirects(response, reverse('accounts:login'))
        user = User.objects.get(email='pat@test.com')
        self.assertEqual(user.role, Role.PATIENT)
        self.assertEqual(user.full_name, 'Pat Patient')
        self.assertFalse(Doctor.objects.filter(user=user).exists())

    def test_doctor_registration_creates_pending_doctor(self):
        response = self.client.post(reverse('accounts:register'), data=self.base_data(
            role='doctor', email='doc@test.com', full_name='Alice Smith',
            specialty='Cardiology', experience_years='12', qualification='MD',
            consultation_fee='150.00', location='Boston', bio='Heart specialist',
        ))
        self.assertRedirects(response, reverse('accounts:login'))
        doctor = Doctor.objects.get(user__email='doc@test.com')
        self.assertEqual(doctor.status, Doctor.Status.PENDING)
        self.assertEqual(doctor.user.role, Role.DOCTOR)
        self.assertEqual(doctor.specialty, 'Cardiology')

    def test_doctor_registration_requires_practice_details(self):
        response = self.client.post(reverse('accounts:register'), data=self.base_data(role='doctor'))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.exists())
        self.assertIn('specialty', response.context['form'].errors)

    def test_negative_fee_rejected(self):
        response = self.client.post(reverse('accounts:register'), data=self.base_data(
            role='doctor', specialty='Cardiology', experience_years='1', qualification='MD',
            consultation_fee='-1', location='Boston',
        ))
        self.assertEqual(response.status_code, 200)
        self.assertIn('consultation_fee', response.context['form'].errors)

    def test_admin_role_cannot_register(self):
        response = self.client.post(reverse('accounts:register'), data=self.base_data(role='admin'))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.exists())

    def test_duplicate_email_rejected(self):
        make_user('pat@test.com', Role.PATIENT)
        response = self.client.post(reverse('accounts:register'), data=self.base_data())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(User.objects.count(), 1)


class LoginTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.patient = make_user('pat@test.com', Role.PATIENT)

    def test_login_with_email(self):
        response = self.client.post(reverse('accounts:login'), data={'email': 'PAT@test.com', 'password': 'pass1234'})
        self.assertRedirects(response, reverse('accounts:dashboard_redirect'), fetch_redirect_response=False)
        self.assertEqual(int(self.client.session['_auth_user_id']), self.patient.pk)

    def test_wrong_password(self):
        response = self.client.post(reverse('accounts:login'), data={'email': 'pat@test.com', 'password': 'nope'})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Invalid email or password.')
        self.assertNotIn('_auth_user_id', self.client.session)

    def test_blocked_user_cannot_login(self):
        self.patient.is_active = False
        self.patient.save()
        response = self.client.post(reverse('accounts:login'), data={'email': 'pat@test.com', 'password': 'pass1234'})
        self.assertEqual(response.status_code, 200)
        self.assertNotIn('_auth_user_id', self.client.session)

    def test_logout(self):
        self.client.force_login(self.patient)
        response = self.client.post(reverse('accounts:logout'))
        self.assertEqual(response.status_code, 302)
        self.assertNotIn('_auth_user_id', self.client.session)


class DashboardRedirectTests(TestCase):

    def setUp(self):
        self.client = Client()

    def test_anonymous_redirects_to_login(self):
        response = self.client.get(reverse('accounts:dashboard_redirect'))
        self.assertRedirects(response, reverse('accounts:login'))

    def test_patient_goes_to_doctor_search(self):
        self.client.force_login(make_user('pat@test.com', Role.PATIENT))
        response = self.client.get(reverse('accounts:dashboard_redirect'))
        self.assertRedirects(response, reverse('doctors:doctor_search'))

    def test_doctor_goes_to_appointments(self):
        self.client.force_login(make_user('doc@test.com', Role.DOCTOR))
        response = self.client.get(reverse('accounts:dashboard_redirect'))
        self.assertRedirects(response, reverse('appointments:list'))

    def test_doctor_redirect_survives_backend_failure(self):
        self.client.force_login(make_user('doc@test.com', Role.DOCTOR))
        with patch.object(Doctor.objects, 'filter', side_effect=DatabaseError('down')):
            with self.assertLogs('accounts.views', level='ERROR'):
                response = self.client.get(reverse('accounts:dashboard_redirect'))
        self.assertRedirects(response, reverse('appointments:list'), fetch_redirect_response=False)
        shown = [str(m) for m in get_messages(response.wsgi_request)]
        self.assertEqual(shown, ['Your doctor profile could not be loaded. Please try again.'])

    def test_admin_goes_to_admin_dashboard(self):
        self.client.force_login(make_user('admin@test.com', Role.ADMIN))
        response = self.client.get(reverse('accounts:dashboard_redirect'))
        self.assertRedirects(response, reverse('accounts:admin_dashboard'))


class AdminReviewViewTests(TestCase):
    """Approve/reject endpoints; only admins may use them."""

    def setUp(self):
        self.client = Client()
        self.admin = make_user('admin@test.com', Role.ADMIN)
        self.patient = make_user('pat@test.com', Role.PATIENT)
        doctor_user = make_user('doc@test.com', Role.DOCTOR, full_name='Dan Doe')
        self.doctor = Doctor.objects.create(
            user=doctor_user, specialty='Cardiology', experience_years=3, qualification='MD',
            consultation_fee=80, location='Boston',
        )

    def test_admin_dashboard_lists_pending(self):
        self.client.force_login(self.admin)
        response = self.client.get(reverse('accounts:admin_dashboard'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(response.context['pending_doctors']), [self.doctor])

    def test_admin_dashboard_survives_backend_failure(self):
        self.client.force_login(self.admin)
        with patch.object(Appointment.objects, 'count', side_effect=DatabaseError('down')):
            with self.assertLogs('accounts.views', level='ERROR'):
                response = self.client.get(reverse('accounts:admin_dashboard'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['total_users'], 0)
        self.assertEqual(response.context['pending_doctors'], [])
        self.assertContains(response, 'Dashboard data is temporarily unavailable.')

    def test_patient_cannot_open_admin_dashboard(self):
        self.client.force_login(self.patient)
        response = self.client.get(reverse('accounts:admin_dashboard'))
        self.assertEqual(response.status_code, 302)

    def test_admin_approves(self):
        self.client.force_login(self.admin)
        self.client.post(reverse('accounts:approve_doctor', kwargs={'doctor_id': self.doctor.pk}))
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.status, Doctor.Status.APPROVED)

    def test_admin_rejects(self):
        self.client.force_login(self.admin)
        self.client.post(reverse('accounts:reject_doctor', kwargs={'doctor_id': self.doctor.pk}))
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.status, Doctor.Status.REJECTED)

    def test_patient_cannot_approve(self):
        self.client.force_login(self.patient)
        self.client.post(reverse('accounts:approve_doctor', kwargs={'doctor_id': self.doctor.pk}))
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.status, Doctor.Status.PENDING)

    def test_get_does_not_approve(self):
        self.client.force_login(self.admin)
        self.client.get(reverse('accounts:approve_doctor', kwargs={'doctor_id': self.doctor.pk}))
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.status, Doctor.Status.PENDING)
