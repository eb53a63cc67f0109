"""
This module defines the GmailEmailService for sending reminders through the Gmail API.
"""

import base64
import logging
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..exceptions import SendError
from .secret_provider import (GMAIL_SECRET_NAMES, SecretProvider,
                              SecretsFileProvider)

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GMAIL_SEND_SCOPE = "https://www.googleapis.com/auth/gmail.send"


def build_mime_message(
    sender: str, to_email: str, subject: str, body_text: str, body_html: Optional[str] = None
) -> str:
    """Builds a multipart/alternative message when HTML is given, plain text otherwise."""
    if body_html and body_html.strip():
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body_text or "", "plain", "utf-8"))
        msg.attach(MIMEText(body_html, "html", "utf-8"))
    else:
        msg = MIMEText(body_text or "", "plain", "utf-8")

    msg["From"] = sender
    msg["To"] = to_email
    subject = subject or ""
    msg["Subject"] = subject if subject.isascii() else Header(subject, "utf-8")
    return msg.as_string()


def encode_raw_message(message: str) -> str:
    """Encodes a MIME message as the unpadded base64url string the Gmail API expects."""
    return base64.urlsafe_b64encode(message.encode("utf-8")).decode("ascii").rstrip("=")


class GmailEmailService:
    """Sends email as the configured Gmail account using a stored refresh token."""

    def __init__(self, secret_provider: Optional[SecretProvider] = None):
        self.secret_provider = secret_provider or SecretsFileProvider()

    def _gmail_client(self, client_id: str, client_secret: str, refresh_token: str):
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
            token_uri=GOOGLE_TOKEN_URI,
            scopes=[GMAIL_SEND_SCOPE],
        )
        creds.refresh(Request())
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def send(
        self, to_email: str, subject: str, plain_text: str, html_body: Optional[str] = None
    ) -> Optional[str]:
        """
        Sends one email.

        Args:
            to_email: The recipient address.
            subject: The subject line.
            plain_text: The plain-text body.
            html_body: Optional HTML alternative.

        Returns:
            The Gmail message ID, or None for a dry run when credentials are missing.

        Raises:
            SendError: If the token exchange or the API call fails.
        """
        secrets = self.secret_provider.fetch(GMAIL_SECRET_NAMES)
        client_id = secrets.get("gmail-client-id")
        client_secret = secrets.get("gmail-client-secret")
        refresh_token = secrets.get("gmail-refresh-token")
        sender = secrets.get("gmail-sender")

        missing = [name for name in GMAIL_SECRET_NAMES if not secrets.get(name)]
        if missing:
            logger.warning(
                f"Dry run, missing credentials {missing}: would send '{subject}' to {to_email}."
            )
            return None

        raw = encode_raw_message(build_mime_message(sender, to_email, subject, plain_text, html_body))
        try:
            gmail = self._gmail_client(client_id, client_secret, refresh_token)
            result = gmail.users().messages().send(userId="me", body={"raw": raw}).execute()
        except (GoogleAuthError, HttpError) as e:
            raise SendError(f"Failed to send email to {to_email}: {e}") from e

        message_id = result.get("id")
        logger.info(f"Email sent to {to_email} (message ID {message_id}).")
        return message_id


def send_test_email(email_service: GmailEmailService, to_email: Optional[str] = None) -> Optional[str]:
    """Sends a short test message, to the sender's own address when none is given."""
    if not to_email:
        to_email = email_service.secret_provider.fetch(["gmail-sender"]).get("gmail-sender")
    if not to_email:
        raise SendError("No recipient given and no gmail-sender configured.")
    return email_service.send(
        to_email,
        "Bin day notifier test email",
        "This is a test from the bin day notifier Gmail setup.",
    )
