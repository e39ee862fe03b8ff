"""Verification codes and welcome mail, sent through the Resend HTTP API."""

import html
import logging

import httpx

from snapstudy.errors import ExternalServiceError

logger = logging.getLogger('snapstudy')

RESEND_API_URL = 'https://api.resend.com/emails'

OTP_SUBJECTS = {
    'registration': 'SnapStudy - Email Verification Code',
    'login': 'SnapStudy - Login Verification Code',
    'email_change': 'SnapStudy - Confirm Your New Email',
}

OTP_ACTIONS = {
    'registration': 'account verification',
    'login': 'login',
    'email_change': 'email change',
}


class EmailDeliveryError(ExternalServiceError):
    default_message = 'Failed to send verification email'


class ResendNotifier:
    def __init__(self, config, http_client=None):
        self.config = config
        self.http_client = http_client or httpx.Client(timeout=config.email_timeout_seconds)

    @property
    def configured(self):
        return bool(self.config.resend_api_key)

    def _send(self, to_email, subject, text_body, html_body):
        try:
            resp = self.http_client.post(
                RESEND_API_URL,
                headers={'Authorization': f'Bearer {self.config.resend_api_key}'},
                json={
                    'from': f'SnapStudy <{self.config.email_from}>',
                    'to': [to_email],
                    'subject': subject,
                    'text': text_body,
                    'html': html_body,
                },
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Email delivery to {to_email} failed: {e}")
            raise EmailDeliveryError()

    def send_otp(self, to_email, code, name, purpose='registration'):
        subject = OTP_SUBJECTS.get(purpose, OTP_SUBJECTS['registration'])
        action = OTP_ACTIONS.get(purpose, OTP_ACTIONS['registration'])
        if not self.configured:
            if self.config.is_dev:
                logger.warning(f"Email not configured; development {action} code for {to_email}: {code}")
                return
            raise EmailDeliveryError('Email delivery is not configured')
        text_body = (
            f"Hi {name},\n\n"
            f"Your SnapStudy {action} code is {code}. It expires in "
            f"{max(1, self.config.otp_ttl_seconds // 60)} minutes.\n\n"
            "If you did not request this code, you can ignore this email."
        )
        html_body = (
            f"<p>Hi {html.escape(name)},</p>"
            f"<p>Your SnapStudy {action} code is:</p>"
            f"<p style=\"font-size:28px;letter-spacing:6px;font-weight:600\">{code}</p>"
            f"<p>It expires in {max(1, self.config.otp_ttl_seconds // 60)} minutes.</p>"
        )
        self._send(to_email, subject, text_body, html_body)

    def send_welcome(self, to_email, name):
        if not self.configured:
            logger.info(f"Email not configured; skipping welcome email for {to_email}")
            return
        text_body = (
            f"Hi {name},\n\n"
            "Welcome to SnapStudy! Your account is verified and your free credits are ready.\n"
            "Upload your notes and turn them into flashcards in seconds."
        )
        html_body = (
            f"<p>Hi {html.escape(name)},</p>"
            "<p>Welcome to SnapStudy! Your account is verified and your free credits are ready.</p>"
        )
        self._send(to_email, 'Welcome to SnapStudy!', text_body, html_body)
