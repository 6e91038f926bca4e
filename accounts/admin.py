from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User


@admin.register(User)
class DocSpotUserAdmin(UserAdmin):
    list_display = ['email', 'full_name', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['email', 'full_name']
    ordering = ['-created_at']
    fieldsets = UserAdmin.fieldsets + (
        ('Profile', {'fields': ('role', 'full_name', 'phone')}),
    )
