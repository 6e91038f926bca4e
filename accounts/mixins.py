from django.contrib import messages
from django.contrib.auth.mixins import LoginRequiredMixin
from django.shortcuts import redirect

from .identity import identity_for
from .models import Role


class RoleRequiredMixin(LoginRequiredMixin):
    """Mixin to require specific role(s) for access; sets self.identity"""
    allowed_roles = []

    def dispatch(self, request, *args, **kwargs):
        self.identity = identity_for(request)
        if not self.identity.is_authenticated:
            return self.handle_no_permission()

        if self.identity.role not in self.allowed_roles:
            messages.error(request, "You don't have permission to access this page.")
            return redirect('accounts:dashboard_redirect')

        return super().dispatch(request, *args, **kwargs)


class AdminRequiredMixin(RoleRequiredMixin):
    """Mixin to require Admin role"""
    allowed_roles = [Role.ADMIN]


class PatientRequiredMixin(RoleRequiredMixin):
    """Mixin to require Patient role"""
    allowed_roles = [Role.PATIENT]
