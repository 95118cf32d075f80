from django import forms
from django.contrib.auth import get_user_model, password_validation
from django.contrib.auth.forms import AuthenticationForm

from .models import Profile

User = get_user_model()


class SignUpForm(forms.Form):
    email = forms.EmailField()
    username = forms.RegexField(
        regex=r'^[A-Za-z0-9_.-]{3,30}$',
        error_messages={'invalid': 'Use 3-30 letters, digits, dots, dashes or underscores.'},
    )
    password = forms.CharField(widget=forms.PasswordInput)

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if User.objects.filter(username=email).exists():
            raise forms.ValidationError('Email already registered')
        return email

    def clean_username(self):
        username = self.cleaned_data['username'].strip()
        if Profile.objects.filter(username__iexact=username).exists():
            raise forms.ValidationError('Username taken')
        return username

    def clean_password(self):
        password = self.cleaned_data['password']
        password_validation.validate_password(password)
        return password


class EmailAuthenticationForm(AuthenticationForm):
    username = forms.EmailField(label='Email', widget=forms.EmailInput(attrs={'autofocus': True}))

    def clean_username(self):
        return self.cleaned_data['username'].strip().lower()

