"""Appointment status state machine.

pending -> confirmed | cancelled, confirmed -> completed. Cancelled and
completed are terminal. Every transition names the roles allowed to make it,
and the actor must own the appointment in that role.
"""
import logging

from accounts.models import Role
from docspot.exceptions import InvalidTransitionError
from .models import Appointment

logger = logging.getLogger(__name__)

PENDING = Appointment.Status.PENDING.value
CONFIRMED = Appointment.Status.CONFIRMED.value
CANCELLED = Appointment.Status.CANCELLED.value
COMPLETED = Appointment.Status.COMPLETED.value

PATIENT = Role.PATIENT.value
DOCTOR = Role.DOCTOR.value

TRANSITIONS = {
    (PENDING, CONFIRMED): frozenset({DOCTOR}),
    (PENDING, CANCELLED): frozenset({DOCTOR, PATIENT}),
    (CONFIRMED, COMPLETED): frozenset({DOCTOR}),
}

TERMINAL = frozenset({CANCELLED, COMPLETED})

ACTION_LABELS = {
    (DOCTOR, CONFIRMED): 'Confirm',
    (DOCTOR, CANCELLED): 'Decline',
    (DOCTOR, COMPLETED): 'Mark Complete',
    (PATIENT, CANCELLED): 'Cancel',
}


def _value(choice):
    return choice.value if hasattr(choice, 'value') else choice


class AppointmentWorkflow:

    def is_owner(self, appointment, identity):
        """Whether ``identity`` is the appointment's patient or doctor in its current role."""
        role = _value(identity.role)
        if role == PATIENT:
            return appointment.patient_id == identity.user_id
        elif role == DOCTOR:
            return appointment.doctor.user_id == identity.user_id
        return False

    def can_transition(self, appointment, new_status, identity):
        roles = TRANSITIONS.get((_value(appointment.status), _value(new_status)))
        if not roles or _value(identity.role) not in roles:
            return False
        return self.is_owner(appointment, identity)

    def allowed_transitions(self, appointment, identity):
        """Target statuses ``identity`` may move ``appointment`` to, in table order."""
        current = _value(appointment.status)
        return [
            target for (source, target) in TRANSITIONS
            if source == current and self.can_transition(appointment, target, identity)
        ]

    def actions(self, appointment, identity):
        """(target status, button label) pairs for the appointment list."""
        role = _value(identity.role)
        return [
            (target, ACTION_LABELS[(role, target)])
            for target in self.allowed_transitions(appointment, identity)
        ]

    def transition(self, appointment, new_status, identity):
        """Validate and apply ``new_status`` on the in-memory appointment.

        Raises InvalidTransitionError without touching the appointment when
        the (from, to) pair is not in the table, the actor's role may not make
        it, or the actor does not own the appointment.
        """
        current = _value(appointment.status)
        target = _value(new_status)
        role = _value(identity.role)

        if current in TERMINAL:
            message = f'A {current} appointment cannot be changed.'
        elif (current, target) not in TRANSITIONS:
            message = f'An appointment cannot go from {current} to {target}.'
        elif role not in TRANSITIONS[(current, target)]:
            message = 'You are not allowed to make this change.'
        elif not self.is_owner(appointment, identity):
            message = 'You can only change your own appointments.'
        else:
            appointment.status = target
            logger.info('Appointment %s %s -> %s by %s %s', appointment.pk, current, target, role, identity.user_id)
            return appointment

        logger.warning(
            'Rejected transition of appointment %s %s -> %s by %s %s',
            appointment.pk, current, target, role, identity.user_id
        )
        raise InvalidTransitionError(message, current=current, target=target, role=role)
