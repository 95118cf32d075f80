from django.contrib.auth import views as auth_views
from django.urls import path, include, reverse_lazy
from django.views.generic import RedirectView
from rest_framework.routers import DefaultRouter
from . import accounts, pages, views
from .forms import EmailAuthenticationForm

app_name = 'feed'

router = DefaultRouter()
router.register(r'posts', views.PostViewSet, basename='post')
router.register(r'categories', views.CategoryViewSet, basename='category')
router.register(r'contact-messages', views.ContactMessageViewSet, basename='contact-message')
router.register(r'error-reports', views.ErrorReportViewSet, basename='error-report')

urlpatterns = [
    path('', pages.feed, name='feed'),
    path('feed/', RedirectView.as_view(pattern_name='feed:feed', query_string=True)),
    path('home/', pages.home, name='home'),
    path('categories/', pages.categories, name='categories'),
    path('embed/<slug:slug>/', pages.embed, name='embed'),
    path('visual/<slug:slug>/', pages.visual, name='visual'),
    path('sitemap-tree/', pages.sitemap_tree, name='sitemap-tree'),
    path('sitemap.xml', pages.sitemap_xml, name='sitemap-xml'),

    path('auth/signup/', accounts.signup, name='signup'),
    path('auth/signin/', auth_views.LoginView.as_view(
        template_name='feed/accounts/signin.html',
        authentication_form=EmailAuthenticationForm,
        next_page=reverse_lazy('feed:home'),
    ), name='signin'),
    path('auth/signout/', auth_views.LogoutView.as_view(next_page=reverse_lazy('feed:home')), name='signout'),
    path('auth/confirm/', accounts.confirm, name='auth-confirm'),
    path('auth/google/', accounts.google_login, name='google-login'),
    path('auth/google/callback/', accounts.google_callback, name='google-callback'),
    path('auth/reset/', auth_views.PasswordResetView.as_view(
        template_name='feed/accounts/reset_request.html',
        email_template_name='feed/accounts/reset_email.txt',
        subject_template_name='feed/accounts/reset_subject.txt',
        success_url=reverse_lazy('feed:reset-sent'),
    ), name='reset-request'),
    path('auth/reset/sent/', auth_views.PasswordResetDoneView.as_view(
        template_name='feed/accounts/reset_sent.html',
    ), name='reset-sent'),
    path('reset-password/<uidb64>/<token>/', auth_views.PasswordResetConfirmView.as_view(
        template_name='feed/accounts/reset_password.html',
        success_url=reverse_lazy('feed:home'),
        post_reset_login=True,
    ), name='reset-password'),

    path('api/', include(router.urls)),
    path('api/auth/me/', views.current_user, name='current-user'),
    path('api/health/', views.health, name='health'),
    path('api/send-contact-message', views.send_contact_message, name='send-contact-message'),
    path('api/send-error-report', views.send_error_report, name='send-error-report'),
]
