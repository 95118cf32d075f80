"""Sign-up, email confirmation and Google sign-in.

Password sign-in, sign-out and password reset use Django's auth views and
are wired in urls.py.
"""
import logging
import secrets
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.contrib import messages
from django.contrib.auth import get_user_model, login
from django.contrib.auth.tokens import default_token_generator
from django.core.mail import send_mail
from django.db import transaction
from django.shortcuts import redirect, render
from django.template.loader import render_to_string
from django.urls import reverse
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode
from django.utils.text import slugify

from .forms import SignUpForm
from .models import Profile

logger = logging.getLogger(__name__)

User = get_user_model()

GOOGLE_AUTHORIZE_URL = 'https://accounts.google.com/o/oauth2/v2/auth'
GOOGLE_TOKEN_URL = 'https://oauth2.googleapis.com/token'
GOOGLE_USERINFO_URL = 'https://openidconnect.googleapis.com/v1/userinfo'
OAUTH_STATE_SESSION_KEY = 'google_oauth_state'


def create_account(email, username, password, is_active=False):
    """Create the auth user and its profile in one transaction."""
    with transaction.atomic():
        user = User.objects.create_user(username=email, email=email, password=password, is_active=is_active)
        Profile.objects.create(user=user, username=username)
    logger.info(f"Created account {user.pk} for {username}")
    return user


def confirmation_url(user):
    query = urlencode({
        'type': 'signup',
        'uid': urlsafe_base64_encode(force_bytes(user.pk)),
        'token': default_token_generator.make_token(user),
    })
    return f"{settings.SITE_BASE_URL}{reverse('feed:auth-confirm')}?{query}"


def send_confirmation_email(user):
    body = render_to_string('feed/accounts/confirmation_email.txt', {
        'user': user,
        'confirm_url': confirmation_url(user),
    })
    send_mail('Confirm your email', body, settings.DEFAULT_FROM_EMAIL, [user.email])


def signup(request):
    form = SignUpForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        user = create_account(
            form.cleaned_data['email'],
            form.cleaned_data['username'],
            form.cleaned_data['password'],
        )
        send_confirmation_email(user)
        messages.success(request, 'Check your email to confirm your account.')
        return redirect('feed:signin')
    return render(request, 'feed/accounts/signup.html', {'form': form})


def _user_from_uid(uidb64):
    try:
        uid = force_str(urlsafe_base64_decode(uidb64))
        return User.objects.get(pk=uid)
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        return None


def confirm(request):
    """Activate an account from the link sent at sign-up."""
    link_type = request.GET.get('type')
    user = _user_from_uid(request.GET.get('uid', ''))
    token = request.GET.get('token', '')

    if link_type == 'signup' and user is not None and default_token_generator.check_token(user, token):
        if not user.is_active:
            user.is_active = True
            user.save(update_fields=['is_active'])
            logger.info(f"Account {user.pk} confirmed")
        return render(request, 'feed/accounts/confirm.html', {
            'status': 'success',
            'message': 'Email verified successfully!',
        })

    logger.warning(f"Invalid confirmation link (type={link_type!r}, user={getattr(user, 'pk', None)})")
    return render(request, 'feed/accounts/confirm.html', {
        'status': 'error',
        'message': 'Invalid verification link.',
    }, status=400)


def _unique_username(seed):
    base = slugify(seed).replace('-', '_')[:24] or 'user'
    username = base
    while Profile.objects.filter(username__iexact=username).exists():
        username = f"{base}_{secrets.token_hex(2)}"
    return username


def google_login(request):
    if not settings.GOOGLE_CLIENT_ID:
        messages.error(request, 'Google sign-in is not configured.')
        return redirect('feed:signin')

    state = secrets.token_urlsafe(24)
    request.session[OAUTH_STATE_SESSION_KEY] = state
    query = urlencode({
        'client_id': settings.GOOGLE_CLIENT_ID,
        'redirect_uri': settings.SITE_BASE_URL + reverse('feed:google-callback'),
        'response_type': 'code',
        'scope': 'openid email profile',
        'state': state,
        'prompt': 'select_account',
    })
    return redirect(f"{GOOGLE_AUTHORIZE_URL}?{query}")


def fetch_google_userinfo(code):
    """Exchange an authorization code for the signed-in Google account's userinfo."""
    token_response = requests.post(GOOGLE_TOKEN_URL, data={
        'code': code,
        'client_id': settings.GOOGLE_CLIENT_ID,
        'client_secret': settings.GOOGLE_CLIENT_SECRET,
        'redirect_uri': settings.SITE_BASE_URL + reverse('feed:google-callback'),
        'grant_type': 'authorization_code',
    }, timeout=settings.OAUTH_TIMEOUT)
    token_response.raise_for_status()
    access_token = token_response.json()['access_token']

    userinfo_response = requests.get(
        GOOGLE_USERINFO_URL,
        headers={'Authorization': f"Bearer {access_token}"},
        timeout=settings.OAUTH_TIMEOUT,
    )
    userinfo_response.raise_for_status()
    return userinfo_response.json()


def google_callback(request):
    expected_state = request.session.pop(OAUTH_STATE_SESSION_KEY, None)
    if not expected_state or request.GET.get('state') != expected_state or 'code' not in request.GET:
        logger.warning("Google callback with missing code or mismatched state")
        messages.error(request, 'Google sign-in failed. Please try again.')
        return redirect('feed:signin')

    try:
        info = fetch_google_userinfo(request.GET['code'])
    except (requests.exceptions.RequestException, KeyError, ValueError) as e:
        logger.error(f"Google sign-in failed: {str(e)}")
        messages.error(request, 'Google sign-in failed. Please try again.')
        return redirect('feed:signin')

    email = (info.get('email') or '').lower()
    if not email or not info.get('email_verified', False):
        messages.error(request, 'Your Google account has no verified email.')
        return redirect('feed:signin')

    user = User.objects.filter(username=email).first()
    if user is None:
        user = create_account(email, _unique_username(email.split('@')[0]), None, is_active=True)
        if info.get('picture'):
            Profile.objects.filter(user=user).update(avatar_url=info['picture'])
    elif not user.is_active:
        user.is_active = True
        user.save(update_fields=['is_active'])

    login(request, user, backend='django.contrib.auth.backends.ModelBackend')
    logger.info(f"User {user.pk} signed in with Google")
    return redirect('feed:home')
