from django.urls import path
from . import views

app_name = 'appointments'

urlpatterns = [
    path('', views.AppointmentListView.as_view(), name='list'),
    path('book/<int:doctor_id>/', views.BookAppointmentView.as_view(), name='book'),
    path('<int:pk>/status/', views.update_appointment_status, name='update_status'),
]
