"""
Email Service using Resend
Session notifications rendered from MJML templates
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import session_booked_learner_template, session_booked_speaker_template
from .models import TutoringSession, User

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(RuntimeError):
    """Raised when an email could not be rendered or handed to Resend"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    # Depending on the version, mjml returns a dict-like result or a string
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    html = getattr(result, "html", None)
    return html if html is not None else str(result)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        raise EmailDeliveryError("Email service not configured - RESEND_API_KEY missing")

    recipients = [to] if isinstance(to, str) else to
    try:
        html_content = compile_mjml_to_html(mjml_content)
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {e}") from e

    logger.info(f"✅ Email sent via Resend to {recipients}")
    return response


async def send_session_booked_emails(session: TutoringSession, speaker: User, learner: User) -> dict:
    """
    Confirm a new booking to both parties.

    Returns:
        Counts of sent and failed messages; delivery errors are logged, not raised
    """
    details = {
        "title": session.title,
        "session_date": session.date.isoformat(),
        "session_time": session.time,
        "duration": session.duration,
        "topics": list(session.topics or []),
        "icebreaker": session.icebreaker,
        "meeting_link": session.meeting_link,
    }
    messages = [
        (
            learner.email,
            f"Session confirmed with {speaker.full_name}",
            session_booked_learner_template(
                learner_name=learner.full_name, speaker_name=speaker.full_name, **details
            ),
        ),
        (
            speaker.email,
            f"New session booked by {learner.full_name}",
            session_booked_speaker_template(
                speaker_name=speaker.full_name, learner_name=learner.full_name, **details
            ),
        ),
    ]

    sent = failed = 0
    for recipient, subject, mjml_content in messages:
        if not recipient:
            failed += 1
            continue
        try:
            await send_email(recipient, subject, mjml_content)
            sent += 1
        except EmailDeliveryError as e:
            logger.warning(f"⚠️ Booking email for session {session.id} not delivered: {e}")
            failed += 1

    return {"sent": sent, "failed": failed}
