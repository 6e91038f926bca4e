from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase, Client
from django.urls import reverse

from accounts.identity import Identity
from accounts.models import User, Role
from docspot.exceptions import InvalidTransitionError, NotFoundError, RemoteError
from .directory import DoctorDirectory, DoctorFilter
from .models import Doctor
from .review import review_doctor


def make_doctor(email, full_name, specialty, location, status=Doctor.Status.APPROVED):
    user = User.objects.create_user(
        username=email, email=email, password='pass1234', role=Role.DOCTOR, full_name=full_name,
    )
    return Doctor.objects.create(
        user=user, specialty=specialty, experience_years=5, qualification='MBBS',
        consultation_fee=50, location=location, status=status,
    )


class DoctorDirectoryTests(TestCase):
    """Only approved doctors are listed; filters combine with AND."""

    def setUp(self):
        self.directory = DoctorDirectory()
        self.cardio = make_doctor('a@test.com', 'Cardio Associates', 'General Medicine', 'Boston')
        self.derm = make_doctor('b@test.com', 'Bob Jones', 'Dermatology', 'Chicago')
        self.heart = make_doctor('c@test.com', 'Carol White', 'Cardiology', 'Chicago')
        self.pending = make_doctor('d@test.com', 'Dan Cardio', 'Cardiology', 'Boston', status=Doctor.Status.PENDING)
        self.rejected = make_doctor('e@test.com', 'Eve Cardio', 'Cardiology', 'Boston', status=Doctor.Status.REJECTED)

    def ids(self, doctors):
        return {d.pk for d in doctors}

    def test_empty_filter_returns_all_approved(self):
        self.assertEqual(self.ids(self.directory.list()), {self.cardio.pk, self.derm.pk, self.heart.pk})
        self.assertEqual(self.ids(self.directory.list(DoctorFilter())), {self.cardio.pk, self.derm.pk, self.heart.pk})

    def test_unapproved_never_listed(self):
        filters = [
            DoctorFilter(),
            DoctorFilter(text='cardio'),
            DoctorFilter(specialty='Cardiology'),
            DoctorFilter(location='Boston'),
            DoctorFilter(text='dan', specialty='Cardiology', location='Boston'),
        ]
        for doctor_filter in filters:
            listed = self.ids(self.directory.list(doctor_filter))
            self.assertNotIn(self.pending.pk, listed)
            self.assertNotIn(self.rejected.pk, listed)

    def test_text_is_case_insensitive_on_name_or_specialty(self):
        self.assertEqual(self.ids(self.directory.list(DoctorFilter(text='CARDIO'))), {self.cardio.pk, self.heart.pk})
        self.assertEqual(self.ids(self.directory.list(DoctorFilter(text='jones'))), {self.derm.pk})
        self.assertEqual(self.ids(self.directory.list(DoctorFilter(text='dermato'))), {self.derm.pk})

    def test_specialty_and_location_are_exact(self):
        self.assertEqual(self.ids(self.directory.list(DoctorFilter(specialty='Cardiology'))), {self.heart.pk})
        self.assertEqual(self.ids(self.directory.list(DoctorFilter(specialty='cardiology'))), set())
        self.assertEqual(self.ids(self.directory.list(DoctorFilter(location='Chicago'))), {self.derm.pk, self.heart.pk})

    def test_filters_are_conjunctive(self):
        self.assertEqual(
            self.ids(self.directory.list(DoctorFilter(text='cardio', location='Chicago'))),
            {self.heart.pk},
        )
        self.assertEqual(self.directory.list(DoctorFilter(text='jones', specialty='Cardiology')), [])

    def test_no_match_is_empty_list(self):
        self.assertEqual(self.directory.list(DoctorFilter(text='nobody')), [])

    def test_filter_from_query(self):
        doctor_filter = DoctorFilter.from_query({'q': '  heart ', 'specialty': 'Cardiology'})
        self.assertEqual(doctor_filter, DoctorFilter(text='heart', specialty='Cardiology', location=''))

    def test_specialties_and_locations_are_distinct(self):
        approved = self.directory.approved()
        self.assertEqual(DoctorDirectory.specialties(approved), ['Cardiology', 'Dermatology', 'General Medicine'])
        self.assertEqual(DoctorDirectory.locations(approved), ['Boston', 'Chicago'])

    def test_get_only_approved(self):
        self.assertEqual(self.directory.get(self.heart.pk), self.heart)
        for doctor_id in (self.pending.pk, self.rejected.pk, 999999, 'abc'):
            with self.assertRaises(NotFoundError):
                self.directory.get(doctor_id)

    def test_backend_failure_is_remote_error(self):
        with patch.object(Doctor.objects, 'select_related', side_effect=DatabaseError('down')):
            with self.assertRaises(RemoteError):
                self.directory.list()


class DoctorSearchViewTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.patient = User.objects.create_user(
            username='pat@test.com', email='pat@test.com', password='pass1234', role=Role.PATIENT, full_name='Pat',
        )
        self.heart = make_doctor('c@test.com', 'Carol White', 'Cardiology', 'Chicago')
        self.derm = make_doctor('b@test.com', 'Bob Jones', 'Dermatology', 'Chicago')
        make_doctor('d@test.com', 'Dan Cardio', 'Cardiology', 'Boston', status=Doctor.Status.PENDING)

    def test_anonymous_redirects_to_login(self):
        response = self.client.get(reverse('doctors:doctor_search'))
        self.assertEqual(response.status_code, 302)
        self.assertIn('login', response.url)

    def test_search_filters_and_counts(self):
        self.client.force_login(self.patient)
        response = self.client.get(reverse('doctors:doctor_search'), {'q': 'cardio'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([d.pk for d in response.context['doctors']], [self.heart.pk])
        self.assertEqual(response.context['total_doctors'], 2)
        self.assertEqual(response.context['matching_doctors'], 1)
        self.assertEqual(response.context['specialties'], ['Cardiology', 'Dermatology'])
        self.assertContains(response, 'Showing 1 of 2 doctors')

    def test_backend_failure_shows_message(self):
        self.client.force_login(self.patient)
        with patch.object(DoctorDirectory, 'approved', side_effect=RemoteError()):
            response = self.client.get(reverse('doctors:doctor_search'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(response.context['doctors']), [])
        self.assertContains(response, RemoteError.default_message)


class DoctorReviewTests(TestCase):
    """Only admins move doctors out of pending."""

    def setUp(self):
        self.admin = User.objects.create_user(
            username='admin@test.com', email='admin@test.com', password='pass1234', role=Role.ADMIN, full_name='Ada',
        )
        self.doctor = make_doctor('d@test.com', 'Dan Doe', 'Cardiology', 'Boston', status=Doctor.Status.PENDING)

    def test_admin_approves_pending(self):
        review_doctor(self.doctor.pk, Doctor.Status.APPROVED, Identity.from_user(self.admin))
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.status, Doctor.Status.APPROVED)
        self.assertEqual(DoctorDirectory().list(), [self.doctor])

    def test_admin_rejects_pending(self):
        review_doctor(self.doctor.pk, Doctor.Status.REJECTED, Identity.from_user(self.admin))
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.status, Doctor.Status.REJECTED)

    def test_non_admin_cannot_review(self):
        with self.assertRaises(InvalidTransitionError):
            review_doctor(self.doctor.pk, Doctor.Status.APPROVED, Identity.from_user(self.doctor.user))
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.status, Doctor.Status.PENDING)

    def test_already_reviewed_doctor_cannot_be_reviewed_again(self):
        identity = Identity.from_user(self.admin)
        review_doctor(self.doctor.pk, Doctor.Status.REJECTED, identity)
        with self.assertRaises(InvalidTransitionError):
            review_doctor(self.doctor.pk, Doctor.Status.APPROVED, identity)

    def test_cannot_review_back_to_pending(self):
        with self.assertRaises(InvalidTransitionError):
            review_doctor(self.doctor.pk, Doctor.Status.PENDING, Identity.from_user(self.admin))

    def test_save_failure_leaves_doctor_pending(self):
        with patch.object(Doctor, 'save', side_effect=DatabaseError('down')):
            with self.assertLogs('doctors.review', level='ERROR'):
                with self.assertRaises(RemoteError):
                    review_doctor(self.doctor.pk, Doctor.Status.APPROVED, Identity.from_user(self.admin))
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.status, Doctor.Status.PENDING)
        self.assertEqual(DoctorDirectory().list(), [])

    def test_unknown_doctor(self):
        with self.assertRaises(NotFoundError):
            review_doctor(999999, Doctor.Status.APPROVED, Identity.from_user(self.admin))
