"""Read-only search over approved doctors.

Approved doctors are fetched wholesale and filtered in Python, so the text
match behaves the same on every database backend.
"""
import logging
from dataclasses import dataclass

from django.db import DatabaseError

from docspot.exceptions import NotFoundError, RemoteError
from .models import Doctor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DoctorFilter:
    text: str = ''
    specialty: str = ''
    location: str = ''

    @classmethod
    def from_query(cls, params):
        return cls(
            text=params.get('q', '').strip(),
            specialty=params.get('specialty', '').strip(),
            location=params.get('location', '').strip(),
        )

    def matches(self, doctor):
        if self.text:
            term = self.text.lower()
            full_name = doctor.user.full_name.lower() if doctor.user_id else ''
            if term not in full_name and term not in doctor.specialty.lower():
                return False
        if self.specialty and doctor.specialty != self.specialty:
            return False
        if self.location and doctor.location != self.location:
            return False
        return True


class DoctorDirectory:

    def approved(self):
        """Every approved doctor, with its user joined in."""
        try:
            return list(Doctor.objects.select_related('user').filter(status=Doctor.Status.APPROVED))
        except DatabaseError as exc:
            logger.exception('Could not load approved doctors')
            raise RemoteError() from exc

    def list(self, doctor_filter=None, doctors=None):
        """Approved doctors matching all of the filter's criteria.

        ``doctors`` lets a caller reuse an already fetched :meth:`approved` list.
        """
        doctor_filter = doctor_filter or DoctorFilter()
        if doctors is None:
            doctors = self.approved()
        return [d for d in doctors if d.status == Doctor.Status.APPROVED and doctor_filter.matches(d)]

    def get(self, doctor_id):
        try:
            return Doctor.objects.select_related('user').get(pk=doctor_id, status=Doctor.Status.APPROVED)
        except (Doctor.DoesNotExist, ValueError, TypeError):
            raise NotFoundError('Doctor not found.')
        except DatabaseError as exc:
            logger.exception('Could not load doctor %s', doctor_id)
            raise RemoteError() from exc

    @staticmethod
    def specialties(doctors):
        return sorted({d.specialty for d in doctors})

    @staticmethod
    def locations(doctors):
        return sorted({d.location for d in doctors})
