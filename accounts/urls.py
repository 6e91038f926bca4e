from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    # Authentication
    path('register/', views.RegisterView.as_view(), name='register'),
    path('login/', views.login_view, name='login'),
    path('logout/', views.CustomLogoutView.as_view(), name='logout'),

    # Dashboard redirect
    path('dashboard/', views.dashboard_redirect, name='dashboard_redirect'),

    # Admin review
    path('admin/dashboard/', views.AdminDashboardView.as_view(), name='admin_dashboard'),
    path('admin/approve-doctor/<int:doctor_id>/', views.approve_doctor, name='approve_doctor'),
    path('admin/reject-doctor/<int:doctor_id>/', views.reject_doctor, name='reject_doctor'),
]
