from datetime import date, time
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase, Client
from django.urls import reverse

from accounts.identity import Identity, UNAUTHENTICATED
from accounts.models import User, Role
from docspot.exceptions import InvalidTransitionError, NotFoundError, RemoteError, ValidationError
from doctors.models import Doctor
from .forms import available_dates
from .models import Appointment
from .repository import AppointmentRepository
from .workflow import AppointmentWorkflow


def make_user(email, role, full_name='Test User'):
    return User.objects.create_user(
        username=email, email=email, password='pass1234', role=role, full_name=full_name,
    )


def make_doctor(email, status=Doctor.Status.APPROVED, full_name='Alice Smith', specialty='Cardiology', location='Boston'):
    user = make_user(email, Role.DOCTOR, full_name=full_name)
    return Doctor.objects.create(
        user=user, specialty=specialty, experience_years=10, qualification='MD',
        consultation_fee=100, location=location, status=status,
    )


class AppointmentFixtureMixin:

    def setUp(self):
        self.patient = make_user('pat@test.com', Role.PATIENT, full_name='Pat Patient')
        self.other_patient = make_user('other@test.com', Role.PATIENT, full_name='Olly Other')
        self.doctor = make_doctor('dra@test.com', full_name='Alice Smith')
        self.other_doctor = make_doctor('drb@test.com', full_name='Bob Jones', specialty='Dermatology')
        self.admin = make_user('admin@test.com', Role.ADMIN, full_name='Ada Admin')

        self.patient_id = Identity.from_user(self.patient)
        self.other_patient_id = Identity.from_user(self.other_patient)
        self.doctor_id = Identity.from_user(self.doctor.user)
        self.other_doctor_id = Identity.from_user(self.other_doctor.user)
        self.admin_id = Identity.from_user(self.admin)

        self.repo = AppointmentRepository()

    def book(self, patient=None, doctor=None, when=date(2025, 3, 10), at=time(10, 0), notes=''):
        return self.repo.create(
            (patient or self.patient).pk, (doctor or self.doctor).pk, when, at, notes,
        )


class AppointmentWorkflowTests(AppointmentFixtureMixin, TestCase):
    """Status transitions: legal pairs, actor roles and ownership."""

    def setUp(self):
        super().setUp()
        self.workflow = AppointmentWorkflow()
        self.appointment = self.book()

    def test_pending_to_completed_is_illegal_for_every_actor(self):
        for identity in (self.patient_id, self.doctor_id, self.other_doctor_id, self.admin_id, UNAUTHENTICATED):
            with self.assertRaises(InvalidTransitionError):
                self.workflow.transition(self.appointment, Appointment.Status.COMPLETED, identity)
        self.assertEqual(self.appointment.status, Appointment.Status.PENDING)

    def test_confirm_then_complete_in_sequence(self):
        self.workflow.transition(self.appointment, Appointment.Status.CONFIRMED, self.doctor_id)
        self.assertEqual(self.appointment.status, Appointment.Status.CONFIRMED)
        self.workflow.transition(self.appointment, Appointment.Status.COMPLETED, self.doctor_id)
        self.assertEqual(self.appointment.status, Appointment.Status.COMPLETED)

    def test_completed_is_terminal(self):
        self.appointment.status = Appointment.Status.COMPLETED
        for target in Appointment.Status.values:
            with self.assertRaises(InvalidTransitionError):
                self.workflow.transition(self.appointment, target, self.doctor_id)

    def test_cancelled_is_terminal(self):
        self.appointment.status = Appointment.Status.CANCELLED
        for target in Appointment.Status.values:
            with self.assertRaises(InvalidTransitionError):
                self.workflow.transition(self.appointment, target, self.patient_id)

    def test_no_transition_back_to_pending(self):
        self.appointment.status = Appointment.Status.CONFIRMED
        with self.assertRaises(InvalidTransitionError):
            self.workflow.transition(self.appointment, Appointment.Status.PENDING, self.doctor_id)

    def test_patient_cannot_confirm_own_appointment(self):
        with self.assertRaises(InvalidTransitionError) as ctx:
            self.workflow.transition(self.appointment, Appointment.Status.CONFIRMED, self.patient_id)
        self.assertEqual(ctx.exception.role, Role.PATIENT.value)
        self.assertEqual(self.appointment.status, Appointment.Status.PENDING)

    def test_patient_can_cancel_own_pending_appointment(self):
        self.workflow.transition(self.appointment, Appointment.Status.CANCELLED, self.patient_id)
        self.assertEqual(self.appointment.status, Appointment.Status.CANCELLED)

    def test_doctor_can_decline_pending_appointment(self):
        self.workflow.transition(self.appointment, Appointment.Status.CANCELLED, self.doctor_id)
        self.assertEqual(self.appointment.status, Appointment.Status.CANCELLED)

    def test_patient_cannot_cancel_confirmed_appointment(self):
        self.appointment.status = Appointment.Status.CONFIRMED
        with self.assertRaises(InvalidTransitionError):
            self.workflow.transition(self.appointment, Appointment.Status.CANCELLED, self.patient_id)

    def test_other_doctor_cannot_confirm(self):
        with self.assertRaises(InvalidTransitionError):
            self.workflow.transition(self.appointment, Appointment.Status.CONFIRMED, self.other_doctor_id)

    def test_other_patient_cannot_cancel(self):
        with self.assertRaises(InvalidTransitionError):
            self.workflow.transition(self.appointment, Appointment.Status.CANCELLED, self.other_patient_id)

    def test_admin_has_no_transitions(self):
        self.assertEqual(self.workflow.allowed_transitions(self.appointment, self.admin_id), [])

    def test_allowed_transitions_per_role(self):
        self.assertEqual(
            self.workflow.allowed_transitions(self.appointment, self.doctor_id),
            [Appointment.Status.CONFIRMED, Appointment.Status.CANCELLED],
        )
        self.assertEqual(
            self.workflow.allowed_transitions(self.appointment, self.patient_id),
            [Appointment.Status.CANCELLED],
        )
        self.assertEqual(self.workflow.allowed_transitions(self.appointment, self.other_doctor_id), [])

    def test_actions_carry_button_labels(self):
        self.assertEqual(
            self.workflow.actions(self.appointment, self.doctor_id),
            [('confirmed', 'Confirm'), ('cancelled', 'Decline')],
        )
        self.assertEqual(self.workflow.actions(self.appointment, self.patient_id), [('cancelled', 'Cancel')])
        self.appointment.status = Appointment.Status.CONFIRMED
        self.assertEqual(self.workflow.actions(self.appointment, self.doctor_id), [('completed', 'Mark Complete')])


class AppointmentRepositoryTests(AppointmentFixtureMixin, TestCase):

    def test_create_with_approved_doctor_is_pending(self):
        first = self.book(notes='Chest pain')
        second = self.book()
        self.assertEqual(first.status, Appointment.Status.PENDING)
        self.assertEqual(first.notes, 'Chest pain')
        self.assertNotEqual(first.pk, second.pk)
        self.assertEqual(first.doctor, self.doctor)

    def test_create_with_unapproved_doctor_fails(self):
        for status in (Doctor.Status.PENDING, Doctor.Status.REJECTED):
            doctor = make_doctor(f'{status}@test.com', status=status)
            with self.assertRaises(ValidationError):
                self.book(doctor=doctor)
        self.assertFalse(Appointment.objects.exists())

    def test_create_with_unknown_doctor_fails(self):
        with self.assertRaises(ValidationError):
            self.repo.create(self.patient.pk, 999999, date(2025, 3, 10), time(10, 0))

    def test_create_requires_a_patient(self):
        with self.assertRaises(ValidationError):
            self.repo.create(self.doctor.user.pk, self.doctor.pk, date(2025, 3, 10), time(10, 0))

    def test_create_with_malformed_date_fails(self):
        with self.assertRaises(ValidationError):
            self.repo.create(self.patient.pk, self.doctor.pk, 'not-a-date', time(10, 0))

    def test_create_wraps_database_failure(self):
        with patch.object(Appointment.objects, 'create', side_effect=DatabaseError('down')):
            with self.assertRaises(RemoteError):
                self.book()

    def test_list_for_patient_only_own(self):
        mine = self.book()
        self.book(patient=self.other_patient)
        self.assertEqual(self.repo.list_for(self.patient_id), [mine])

    def test_list_for_doctor_only_own(self):
        a = self.book()
        b = self.book(patient=self.other_patient)
        self.book(doctor=self.other_doctor)
        result = self.repo.list_for(self.doctor_id)
        self.assertEqual({x.pk for x in result}, {a.pk, b.pk})
        self.assertTrue(all(x.doctor_id == self.doctor.pk for x in result))

    def test_list_for_most_recent_first(self):
        first = self.book()
        second = self.book(when=date(2025, 3, 11))
        self.assertEqual(self.repo.list_for(self.patient_id), [second, first])

    def test_list_for_doctor_without_record_is_empty(self):
        self.book()
        new_doctor = make_user('newdoc@test.com', Role.DOCTOR)
        self.assertEqual(self.repo.list_for(Identity.from_user(new_doctor)), [])

    def test_doctor_for_missing_record_raises(self):
        new_doctor = make_user('newdoc@test.com', Role.DOCTOR)
        with self.assertRaises(NotFoundError):
            self.repo.doctor_for(new_doctor.pk)

    def test_list_for_admin_sees_all(self):
        self.book()
        self.book(doctor=self.other_doctor)
        self.assertEqual(len(self.repo.list_for(self.admin_id)), 2)

    def test_list_for_unauthenticated_is_empty(self):
        self.book()
        self.assertEqual(self.repo.list_for(UNAUTHENTICATED), [])

    def test_list_for_wraps_database_failure(self):
        with patch.object(Appointment.objects, 'select_related', side_effect=DatabaseError('down')):
            with self.assertRaises(RemoteError):
                self.repo.list_for(self.patient_id)

    def test_update_status_persists_legal_transition(self):
        appointment = self.book()
        self.repo.update_status(appointment.pk, 'confirmed', self.doctor_id)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.CONFIRMED)

    def test_update_status_illegal_leaves_record_unchanged(self):
        appointment = self.book()
        with self.assertRaises(InvalidTransitionError):
            self.repo.update_status(appointment.pk, 'confirmed', self.patient_id)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.PENDING)

    def test_update_status_save_failure_leaves_record_unchanged(self):
        appointment = self.book()
        with patch.object(Appointment, 'save', side_effect=DatabaseError('down')):
            with self.assertLogs('appointments.repository', level='ERROR'):
                with self.assertRaises(RemoteError):
                    self.repo.update_status(appointment.pk, 'confirmed', self.doctor_id)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.PENDING)

    def test_update_status_unknown_status(self):
        appointment = self.book()
        with self.assertRaises(ValidationError):
            self.repo.update_status(appointment.pk, 'rescheduled', self.doctor_id)

    def test_update_status_missing_appointment(self):
        with self.assertRaises(NotFoundError):
            self.repo.update_status(424242, 'confirmed', self.doctor_id)

    def test_booking_scenario(self):
        """Patient books, doctor confirms, patient can no longer cancel."""
        appointment = self.repo.create(self.patient.pk, self.doctor.pk, date(2025, 3, 10), time(10, 0))
        self.assertEqual(appointment.status, Appointment.Status.PENDING)

        self.repo.update_status(appointment.pk, Appointment.Status.CONFIRMED, self.doctor_id)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.CONFIRMED)

        with self.assertRaises(InvalidTransitionError):
            self.repo.update_status(appointment.pk, Appointment.Status.CANCELLED, self.patient_id)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.CONFIRMED)


class AppointmentViewTests(AppointmentFixtureMixin, TestCase):
    """Booking, listing and status updates over HTTP."""

    def setUp(self):
        super().setUp()
        self.client = Client()

    def test_patient_books_appointment(self):
        self.client.force_login(self.patient)
        booking_date = available_dates()[0]
        response = self.client.post(reverse('appointments:book', kwargs={'doctor_id': self.doctor.pk}), data={
            'appointment_date': booking_date.isoformat(),
            'appointment_time': '10:00',
            'notes': 'Follow-up',
        })
        self.assertRedirects(response, reverse('appointments:list'))
        appointment = Appointment.objects.get(patient=self.patient)
        self.assertEqual(appointment.status, Appointment.Status.PENDING)
        self.assertEqual(appointment.appointment_date, booking_date)
        self.assertEqual(appointment.appointment_time, time(10, 0))

    def test_booking_page_for_unapproved_doctor_redirects(self):
        pending = make_doctor('pending@test.com', status=Doctor.Status.PENDING)
        self.client.force_login(self.patient)
        response = self.client.get(reverse('appointments:book', kwargs={'doctor_id': pending.pk}))
        self.assertRedirects(response, reverse('doctors:doctor_search'))

    def test_doctor_cannot_open_booking_page(self):
        self.client.force_login(self.doctor.user)
        response = self.client.get(reverse('appointments:book', kwargs={'doctor_id': self.doctor.pk}))
        self.assertEqual(response.status_code, 302)
        self.assertFalse(Appointment.objects.exists())

    def test_booking_rejects_weekend_or_unoffered_slot(self):
        self.client.force_login(self.patient)
        response = self.client.post(reverse('appointments:book', kwargs={'doctor_id': self.doctor.pk}), data={
            'appointment_date': '1999-01-01',
            'appointment_time': '03:00',
        })
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Appointment.objects.exists())

    def test_list_shows_only_own_appointments_with_actions(self):
        mine = self.book()
        self.book(doctor=self.other_doctor)
        self.client.force_login(self.doctor.user)
        response = self.client.get(reverse('appointments:list'))
        self.assertEqual(response.status_code, 200)
        rows = response.context['rows']
        self.assertEqual([r['appointment'].pk for r in rows], [mine.pk])
        self.assertEqual(rows[0]['actions'], [('confirmed', 'Confirm'), ('cancelled', 'Decline')])

    def test_list_status_tab(self):
        self.book()
        confirmed = self.book()
        self.repo.update_status(confirmed.pk, 'confirmed', self.doctor_id)
        self.client.force_login(self.patient)
        response = self.client.get(reverse('appointments:list'), {'filter': 'confirmed'})
        self.assertEqual([a.pk for a in response.context['appointments']], [confirmed.pk])

    def test_list_requires_login(self):
        response = self.client.get(reverse('appointments:list'))
        self.assertEqual(response.status_code, 302)
        self.assertIn('login', response.url)

    def test_doctor_confirms_via_post(self):
        appointment = self.book()
        self.client.force_login(self.doctor.user)
        response = self.client.post(
            reverse('appointments:update_status', kwargs={'pk': appointment.pk}), data={'status': 'confirmed'},
        )
        self.assertRedirects(response, reverse('appointments:list'))
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.CONFIRMED)

    def test_patient_cannot_confirm_via_post(self):
        appointment = self.book()
        self.client.force_login(self.patient)
        self.client.post(reverse('appointments:update_status', kwargs={'pk': appointment.pk}), data={'status': 'confirmed'})
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.PENDING)

    def test_other_doctor_cannot_decline_via_post(self):
        appointment = self.book()
        self.client.force_login(self.other_doctor.user)
        response = self.client.post(
            reverse('appointments:update_status', kwargs={'pk': appointment.pk}), data={'status': 'cancelled'},
            follow=True,
        )
        messages = [str(m) for m in response.context['messages']]
        self.assertTrue(any('Failed to update appointment status' in m for m in messages))
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.PENDING)

    def test_status_update_backend_failure_shows_message(self):
        appointment = self.book()
        self.client.force_login(self.doctor.user)
        with patch.object(Appointment, 'save', side_effect=DatabaseError('down')):
            with self.assertLogs('appointments.repository', level='ERROR'):
                response = self.client.post(
                    reverse('appointments:update_status', kwargs={'pk': appointment.pk}),
                    data={'status': 'confirmed'}, follow=True,
                )
        messages = [str(m) for m in response.context['messages']]
        self.assertIn(f'Failed to update appointment status: {RemoteError.default_message}', messages)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, Appointment.Status.PENDING)

    def test_status_update_requires_post(self):
        appointment = self.book()
        self.client.force_login(self.doctor.user)
        response = self.client.get(reverse('appointments:update_status', kwargs={'pk': appointment.pk}))
        self.assertEqual(response.status_code, 405)

    def test_status_update_keeps_tab(self):
        appointment = self.book()
        self.client.force_login(self.doctor.user)
        response = self.client.post(
            reverse('appointments:update_status', kwargs={'pk': appointment.pk}),
            data={'status': 'confirmed', 'filter': 'pending'},
        )
        self.assertEqual(response.url, reverse('appointments:list') + '?filter=pending')
