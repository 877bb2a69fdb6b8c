"""
Booking confirmations and waitlist offers by email via SMTP (Gmail or other).
Set SMTP_USER, SMTP_PASSWORD (and optionally NOTIFY_FROM) in .env; without them sending is skipped.
Every send is best-effort: failures are logged and reported as False, never raised.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from teesheet.config import settings

logger = logging.getLogger(__name__)


def _from_address() -> str:
    if settings.notify_from:
        return settings.notify_from
    if settings.smtp_user:
        return f"Tee Sheet <{settings.smtp_user}>"
    return "Tee Sheet <noreply@localhost>"


def _send(to_email: str, subject: str, body: str) -> bool:
    to_email = (to_email or "").strip()
    if not to_email:
        return False
    if not settings.smtp_user or not settings.smtp_password:
        logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping email to %s", to_email)
        return False
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = _from_address()
    msg["To"] = to_email
    msg.attach(MIMEText(body, "plain"))
    msg.attach(MIMEText(f"<pre style='font-family:sans-serif'>{body}</pre>", "html"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.smtp_user, [to_email], msg.as_string())
        logger.info("Email sent to %s: %s", to_email, subject)
        return True
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)
        return False


def send_booking_confirmation(booking: dict[str, Any]) -> int:
    """Email every player with an address on the booking. Returns how many were sent."""
    legs = booking.get("legs") or []
    recipients: list[str] = []
    for leg in legs[:1]:
        for p in leg.get("players") or []:
            email = (p.get("email") or "").strip()
            if email and email not in recipients:
                recipients.append(email)
    if not recipients:
        return 0
    lines = ["Your tee time booking is confirmed.", ""]
    for leg in legs:
        lines.append(f"• Leg {leg.get('leg_index', 0) + 1}: {leg.get('start_time', '')}")
    lines.append("")
    lines.append(f"Players: {booking.get('party_size')}  Total: ${booking.get('total_price_cents', 0) / 100:.2f}")
    body = "\n".join(lines)
    return sum(1 for to in recipients if _send(to, "Your tee time booking is confirmed", body))


def send_waitlist_offer(to_email: str | None, waitlist_id: int, token: str, start_time: str, expires_in_seconds: int) -> bool:
    if not to_email:
        return False
    minutes = max(1, expires_in_seconds // 60)
    body = "\n".join([
        f"A spot opened up for your waitlisted tee time at {start_time}.",
        "",
        f"Accept within {minutes} minutes with waitlist id {waitlist_id} and token:",
        token,
    ])
    return _send(to_email, "A tee time opened up for you", body)
