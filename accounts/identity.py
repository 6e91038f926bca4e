"""Current-user identity passed explicitly to the directory, repository and workflow.

Components never read ``request.user`` themselves; views resolve an
:class:`Identity` once with :func:`identity_for` and hand it down.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import DatabaseError

from .models import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: Optional[int] = None
    role: Optional[Role] = None

    @property
    def is_authenticated(self):
        return self.user_id is not None and self.role is not None

    @property
    def is_patient(self):
        return self.role == Role.PATIENT

    @property
    def is_doctor(self):
        return self.role == Role.DOCTOR

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    @classmethod
    def from_user(cls, user):
        """Build from an auth user; anonymous and blocked users are unauthenticated."""
        if user is None or not user.is_authenticated or not user.is_active:
            return UNAUTHENTICATED
        try:
            role = Role(user.role)
        except ValueError:
            logger.error('User %s has unknown role %r; treating as unauthenticated', user.pk, user.role)
            return UNAUTHENTICATED
        return cls(user_id=user.pk, role=role)


UNAUTHENTICATED = Identity()


def identity_for(request):
    """Resolve the identity of the session behind ``request``.

    The session user is loaded lazily by the auth middleware, so a failing
    user table surfaces here. That degrades to an anonymous session.
    """
    try:
        return Identity.from_user(getattr(request, 'user', None))
    except DatabaseError:
        logger.exception('Identity lookup failed; continuing unauthenticated')
        return UNAUTHENTICATED
