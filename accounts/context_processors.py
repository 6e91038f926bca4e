"""Template context processors - current identity for navbar and action buttons."""
from .identity import identity_for


def identity(request):
    """Provide the resolved identity so templates never touch request.user directly."""
    return {'identity': identity_for(request)}
