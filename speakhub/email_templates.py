"""
MJML Email Templates
Session notifications rendered with MJML for cross-client compatibility
"""

from html import escape
from typing import Optional

THEME = {
    "primary": "#6366f1",
    "primary_dark": "#4f46e5",
    "primary_light": "#e0e7ff",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you have a session booked on SpeakHub.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _session_details(
    title: str,
    session_date: str,
    session_time: str,
    duration: int,
    topics: list[str],
    icebreaker: Optional[str],
) -> str:
    rows = [
        ("Session", title),
        ("Date", session_date),
        ("Time", f"{session_time} (UTC, {duration} minutes)"),
    ]
    if topics:
        rows.append(("Topics", ", ".join(topics)))

    details = "".join(
        f'<tr><td style="padding:4px 16px 4px 0;color:{THEME["text_muted"]};">{label}</td>'
        f'<td style="padding:4px 0;color:{THEME["text_primary"]};font-weight:600;">{escape(value)}</td></tr>'
        for label, value in rows
    )
    section = f"""
    <mj-table padding="0 0 24px 0">
      {details}
    </mj-table>
    """
    if icebreaker:
        section += f"""
    <mj-text background-color="{THEME['primary_light']}" color="{THEME['primary_dark']}" padding="16px" font-size="15px">
      Icebreaker: {escape(icebreaker)}
    </mj-text>
    """
    return section


def session_booked_learner_template(
    learner_name: str,
    speaker_name: str,
    title: str,
    session_date: str,
    session_time: str,
    duration: int,
    topics: list[str],
    icebreaker: Optional[str],
    meeting_link: str,
) -> str:
    content = f"""
    <mj-text padding="0 0 24px 0">
      Hi {escape(learner_name)}, your session with {escape(speaker_name)} is confirmed.
    </mj-text>
    {_session_details(title, session_date, session_time, duration, topics, icebreaker)}
    """
    return get_base_template(
        title="Your session is booked",
        preview_text=f"Session with {escape(speaker_name)} on {session_date} at {session_time}",
        content_sections=content,
        cta_url=meeting_link,
        cta_label="Join the meeting",
    )


def session_booked_speaker_template(
    speaker_name: str,
    learner_name: str,
    title: str,
    session_date: str,
    session_time: str,
    duration: int,
    topics: list[str],
    icebreaker: Optional[str],
    meeting_link: str,
) -> str:
    content = f"""
    <mj-text padding="0 0 24px 0">
      Hi {escape(speaker_name)}, {escape(learner_name)} booked a session with you.
    </mj-text>
    {_session_details(title, session_date, session_time, duration, topics, icebreaker)}
    """
    return get_base_template(
        title="New session booked",
        preview_text=f"{escape(learner_name)} booked {session_date} at {session_time}",
        content_sections=content,
        cta_url=meeting_link,
        cta_label="Join the meeting",
    )
