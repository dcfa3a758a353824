import html
import smtplib
from email.message import EmailMessage
from typing import Optional

import requests

from .config import settings


def render_email(
    title: str,
    message: str,
    button_text: Optional[str] = None,
    button_link: Optional[str] = None,
) -> tuple[str, str]:
    """Render the EMS email template. Returns (plain_text, html)."""
    text = f"{title}\n\n{message}"
    button_html = ""
    if button_text and button_link:
        text += f"\n\n{button_text}: {button_link}"
        button_html = (
            f'<p><a href="{html.escape(button_link, quote=True)}" '
            'style="background:#2563eb;color:#fff;padding:10px 18px;'
            f'border-radius:6px;text-decoration:none">{html.escape(button_text)}</a></p>'
        )
    body_html = (
        '<div style="font-family:Arial,sans-serif;max-width:560px;margin:auto">'
        f"<h2>{html.escape(title)}</h2>"
        f"<p>{html.escape(message)}</p>"
        f"{button_html}"
        '<p style="color:#888;font-size:12px">Employee Management System</p>'
        "</div>"
    )
    return text, body_html


def _send_via_smtp(subject: str, to_email: str, body: str, body_html: Optional[str]) -> Optional[str]:
    host = settings.smtp_host
    port = settings.smtp_port
    username = settings.smtp_username
    password = settings.smtp_password
    mail_from = settings.mail_from or (username or "noreply@example.com")

    if not host or not port or not username or not password:
        return "SMTP not configured"

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = mail_from
    msg["To"] = to_email
    msg.set_content(body)
    if body_html:
        msg.add_alternative(body_html, subtype="html")

    try:
        with smtplib.SMTP(host, port) as server:
            if settings.smtp_use_tls:
                server.starttls()
            server.login(username, password)
            server.send_message(msg)
        return None
    except Exception as e:
        return str(e)


def _send_via_formspree(subject: str, to_email: str, body: str) -> Optional[str]:
    form_id = settings.formspree_form_id
    if not form_id:
        return "FORMSPREE not configured"
    url = f"https://formspree.io/f/{form_id}"
    # Formspree emails the form owner; the recipient rides along for routing rules.
    payload = {
        "_subject": subject,
        "to": to_email,
        "message": body,
    }
    headers = {"Accept": "application/json"}
    if settings.formspree_api_key:
        headers["Authorization"] = f"Bearer {settings.formspree_api_key}"
    try:
        resp = requests.post(url, data=payload, headers=headers, timeout=10)
        if resp.status_code in (200, 202):
            return None
        return f"Formspree error: {resp.status_code} {resp.text}"
    except requests.RequestException as e:
        return str(e)


def send_mail(subject: str, to_email: str, body: str, body_html: Optional[str] = None) -> Optional[str]:
    """
    Send an email via SMTP if configured; otherwise try Formspree.
    Returns None on success, or an error string.
    """
    smtp_err = _send_via_smtp(subject, to_email, body, body_html)
    if smtp_err is None:
        return None
    if smtp_err == "SMTP not configured":
        fs_err = _send_via_formspree(subject, to_email, body)
        if fs_err is None:
            return None
        if fs_err == "FORMSPREE not configured":
            return "SMTP not configured"
        return fs_err
    # SMTP attempted but failed for another reason
    return smtp_err


def send_templated_mail(
    to_email: str,
    subject: str,
    title: str,
    message: str,
    button_text: Optional[str] = None,
    button_link: Optional[str] = None,
) -> Optional[str]:
    text, body_html = render_email(title, message, button_text, button_link)
    return send_mail(subject, to_email, text, body_html)
