"""Transactional email for support submissions, sent through the Resend HTTP API."""
import logging
import time

import requests
from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone

from .models import AdminSetting

logger = logging.getLogger(__name__)

CONTACT_EMAIL_SETTING = 'contact_email'
ERROR_REPORT_EMAIL_SETTING = 'error_report_email'


class MailerError(Exception):
    pass


class MailerConfigError(MailerError):
    """Raised when no recipient or API key is configured."""


class MailerRejectedError(MailerError):
    """Raised when the mail provider answers with an error."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def resolve_recipient(setting_key):
    recipient = AdminSetting.get_value(setting_key) or settings.ADMIN_EMAIL
    if not recipient:
        raise MailerConfigError("Admin email not configured")
    return recipient


def send_email(sender, to, subject, html, reply_to=None):
    """POST one message to Resend and return the provider's JSON payload.

    requests exceptions (Timeout, ConnectionError, ...) propagate to the caller.
    """
    if not settings.RESEND_API_KEY:
        raise MailerConfigError("RESEND_API_KEY is not set")

    payload = {
        'from': sender,
        'to': [to],
        'subject': subject,
        'html': html,
    }
    if reply_to:
        payload['reply_to'] = reply_to

    logger.info(f"Sending email '{subject}' to {to} via {settings.RESEND_API_URL}")
    start_time = time.time()
    response = requests.post(
        settings.RESEND_API_URL,
        json=payload,
        headers={'Authorization': f"Bearer {settings.RESEND_API_KEY}"},
        timeout=settings.MAIL_TIMEOUT,
    )
    request_time = time.time() - start_time
    logger.info(f"Mail API answered in {request_time:.2f} seconds with status {response.status_code}")

    try:
        data = response.json()
    except ValueError:
        data = {}

    if response.status_code >= 400:
        message = data.get('message') or response.text[:200] or f"HTTP {response.status_code}"
        logger.error(f"Mail API rejected message: {message}")
        raise MailerRejectedError(message, status_code=response.status_code)

    return data


def send_contact_message(message):
    recipient = resolve_recipient(CONTACT_EMAIL_SETTING)
    html = render_to_string('feed/email/contact_message.html', {'message': message})
    data = send_email(
        settings.MAIL_FROM_CONTACT,
        recipient,
        f"Contact: {message.subject}",
        html,
        reply_to=message.email,
    )
    message.emailed_at = timezone.now()
    message.save(update_fields=['emailed_at'])
    return data


def send_error_report(report):
    recipient = resolve_recipient(ERROR_REPORT_EMAIL_SETTING)
    html = render_to_string('feed/email/error_report.html', {
        'report': report,
        'base_url': settings.SITE_BASE_URL,
    })
    subject = f"Error report: {report.post.title}" if report.post else "Error report"
    data = send_email(
        settings.MAIL_FROM_ERRORS,
        recipient,
        subject,
        html,
        reply_to=report.email or None,
    )
    report.emailed_at = timezone.now()
    report.save(update_fields=['emailed_at'])
    return data
