from django.contrib import admin
from .models import Doctor


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ['user', 'specialty', 'location', 'consultation_fee', 'status', 'created_at']
    list_filter = ['status', 'specialty']
    search_fields = ['user__full_name', 'specialty', 'location']
