from django import forms
from django.contrib.auth.forms import UserCreationForm
from django.db import transaction

from doctors.models import Doctor
from .models import User, Role


class UserRegistrationForm(UserCreationForm):
    """Sign-up form tagged with a role; doctors also fill in their practice details"""

    ROLE_CHOICES = [
        (Role.PATIENT.value, 'Patient'),
        (Role.DOCTOR.value, 'Doctor'),
    ]
    DOCTOR_FIELDS = ('specialty', 'qualification', 'location')

    role = forms.ChoiceField(choices=ROLE_CHOICES, initial=Role.PATIENT.value)
    full_name = forms.CharField(min_length=2, max_length=150)
    email = forms.EmailField()
    phone = forms.CharField(max_length=20, required=False)

    # Doctor only
    specialty = forms.CharField(max_length=100, required=False)
    experience_years = forms.IntegerField(min_value=0, required=False)
    qualification = forms.CharField(max_length=200, required=False)
    consultation_fee = forms.DecimalField(min_value=0, max_digits=10, decimal_places=2, required=False)
    location = forms.CharField(max_length=200, required=False)
    bio = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}), required=False)

    class Meta:
        model = User
        fields = ('role', 'full_name', 'email', 'phone', 'password1', 'password2')

    def clean_role(self):
        role = self.cleaned_data.get('role')
        if role == Role.ADMIN:
            raise forms.ValidationError("Admin role cannot be selected during registration.")
        return role

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("An account with this email already exists.")
        return email

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('role') == Role.DOCTOR:
            for field in self.DOCTOR_FIELDS:
                if len((cleaned_data.get(field) or '').strip()) < 2:
                    self.add_error(field, 'This field is required for doctors.')
            for field in ('experience_years', 'consultation_fee'):
                if cleaned_data.get(field) is None:
                    self.add_error(field, 'This field is required for doctors.')
        return cleaned_data

    @transaction.atomic
    def save(self, commit=True):
        user = super().save(commit=False)
        user.username = self.cleaned_data['email']
        user.email = self.cleaned_data['email']
        user.full_name = self.cleaned_data['full_name'].strip()
        user.phone = self.cleaned_data.get('phone', '')
        user.role = self.cleaned_data['role']
        if not commit:
            return user

        user.save()
        if user.role == Role.DOCTOR:
            Doctor.objects.create(
                user=user,
                specialty=self.cleaned_data['specialty'].strip(),
                experience_years=self.cleaned_data['experience_years'],
                qualification=self.cleaned_data['qualification'].strip(),
                consultation_fee=self.cleaned_data['consultation_fee'],
                location=self.cleaned_data['location'].strip(),
                bio=self.cleaned_data.get('bio', ''),
                status=Doctor.Status.PENDING,
            )
        return user


class LoginForm(forms.Form):
    """Custom login form - login using email"""

    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput)
