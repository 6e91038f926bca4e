from django.urls import path
from . import views

app_name = 'doctors'

urlpatterns = [
    path('search/', views.DoctorSearchView.as_view(), name='doctor_search'),
]
