# Overview: Service-layer operations for outbound email via the Mailgun HTTP API.

"""
Email Service

WHY: Verification links, magic links and support requests go out by email.
Delivery is fire-and-forget: the primary action (registration, login,
support form) succeeds even when the email provider is down.

send() never raises. It returns True when Mailgun accepted the message and
False otherwise; failures are logged as warnings.
"""

from __future__ import annotations

import logging

import requests
from flask import current_app
from markupsafe import escape


logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 10

_BUTTON_TEMPLATE = """
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
  <h2>{heading}</h2>
  <p>{body}</p>
  <p>
    <a href="{link}" style="display: inline-block; background-color: #000; color: #fff; padding: 12px 24px; text-decoration: none; border-radius: 6px; font-weight: bold;">
      {button}
    </a>
  </p>
  <p style="font-size: 12px; color: #666;">
    Or copy and paste this link into your browser: <br>
    {link}
  </p>
</div>
"""


def is_configured() -> bool:
    cfg = current_app.config
    return bool(cfg.get("MAILGUN_API_KEY") and cfg.get("MAILGUN_DOMAIN"))


def sender_address() -> str:
    return f"Retoro <noreply@{current_app.config.get('MAILGUN_DOMAIN') or 'localhost'}>"


def send(to: str, subject: str, html: str, text: str | None = None, reply_to: str | None = None) -> bool:
    if not is_configured():
        logger.warning("Mailgun credentials not configured; not sending %r to %s", subject, to)
        return False

    cfg = current_app.config
    data = {
        "from": sender_address(),
        "to": [to],
        "subject": subject,
        "html": html,
    }
    if text:
        data["text"] = text
    if reply_to:
        data["h:Reply-To"] = reply_to

    try:
        response = requests.post(
            f"{cfg['MAILGUN_URL'].rstrip('/')}/v3/{cfg['MAILGUN_DOMAIN']}/messages",
            auth=("api", cfg["MAILGUN_API_KEY"]),
            data=data,
            timeout=SEND_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to send email %r to %s: %s", subject, to, exc)
        return False

    logger.info("Email %r sent to %s", subject, to)
    return True


def send_verification_email(to: str, verification_link: str) -> bool:
    html = _BUTTON_TEMPLATE.format(
        heading="Welcome to Retoro!",
        body="Please verify your email address to complete your registration.",
        button="Verify Email",
        link=verification_link,
    )
    text = f"Welcome to Retoro! Please verify your email by clicking the following link: {verification_link}"
    return send(to, "Verify your email for Retoro", html, text=text)


def send_magic_link_email(to: str, magic_link: str) -> bool:
    html = _BUTTON_TEMPLATE.format(
        heading="Log in to Retoro",
        body="Click the button below to sign in to your account.",
        button="Log In",
        link=magic_link,
    )
    text = f"Click this link to log in to Retoro: {magic_link}"
    return send(to, "Log in to Retoro", html, text=text)


def send_support_request(
    subject: str,
    message: str,
    from_email: str | None,
    user_id: str | None = None,
    user_name: str | None = None,
) -> bool:
    html = (
        "<h3>Support request</h3>"
        f"<p><b>User:</b> {escape(user_id or 'anonymous')} {escape(user_name or '')}</p>"
        f"<p><b>Email:</b> {escape(from_email or 'not provided')}</p>"
        f"<pre>{escape(message)}</pre>"
    )
    return send(
        current_app.config["SUPPORT_EMAIL"],
        f"[Support] {subject}",
        html,
        text=message,
        reply_to=from_email,
    )
