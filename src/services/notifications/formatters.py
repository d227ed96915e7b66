"""Message bodies for case-update notifications.

Telegram gets a compact HTML message (its ``parse_mode=HTML`` subset);
email gets a standalone HTML document. Every upstream value is escaped.
"""

from __future__ import annotations

from html import escape

from src.models.domain import ChangeEvent, ChangeKind

BRAND = "Case Tracker"

KIND_EMOJI: dict[ChangeKind, str] = {
    ChangeKind.STATUS_CHANGE: "\U0001f504",
    ChangeKind.NEW_ORDER: "\U0001f4cb",
    ChangeKind.HEARING_DATE_CHANGE: "\U0001f4c5",
    ChangeKind.JUDGE_CHANGE: "\u2696\ufe0f",
    ChangeKind.NEW_CASE: "\u2705",
    ChangeKind.HEARING_REMINDER: "\u23f0",
}
DEFAULT_EMOJI = "\U0001f4e2"


def kind_label(kind: ChangeKind) -> str:
    """``hearing_reminder`` -> ``HEARING REMINDER``."""
    return kind.value.replace("_", " ").upper()


def format_subject(case_title: str, event: ChangeEvent) -> str:
    return f"Case Update: {case_title} - {kind_label(event.kind)}"


def format_telegram_message(
    case_title: str,
    event: ChangeEvent,
    court_name: str | None = None,
) -> str:
    emoji = KIND_EMOJI.get(event.kind, DEFAULT_EMOJI)
    lines = [
        f"{emoji} <b>{kind_label(event.kind)}</b>",
        "",
        f"<b>Case:</b> {escape(case_title, quote=False)}",
    ]
    if court_name:
        lines.append(f"<b>Court:</b> {escape(court_name, quote=False)}")
    if event.old_value:
        lines.append(f"<b>Previous:</b> {escape(event.old_value, quote=False)}")
    lines.append(f"<b>Current:</b> {escape(event.new_value, quote=False)}")
    lines.extend(["", f"<i>{BRAND}</i>"])
    return "\n".join(lines)


def format_email_html(
    case_title: str,
    event: ChangeEvent,
    court_name: str | None = None,
) -> str:
    rows = [f"<p><strong>Case:</strong> {escape(case_title)}</p>"]
    if court_name:
        rows.append(f"<p><strong>Court:</strong> {escape(court_name)}</p>")
    if event.old_value:
        rows.append(f"<p><strong>Previous:</strong> {escape(event.old_value)}</p>")
    rows.append(f"<p><strong>Current:</strong> {escape(event.new_value)}</p>")
    body = "\n    ".join(rows)

    return f"""<!DOCTYPE html>
<html>
<body style="font-family: -apple-system, 'Segoe UI', sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #1a1a2e; color: white; padding: 20px; border-radius: 8px 8px 0 0;">
    <h2 style="margin: 0;">Case Update: {kind_label(event.kind)}</h2>
  </div>
  <div style="border: 1px solid #e0e0e0; border-top: none; padding: 20px; border-radius: 0 0 8px 8px;">
    {body}
    <hr style="border: none; border-top: 1px solid #e0e0e0; margin: 20px 0;">
    <p style="color: #666; font-size: 12px;">{BRAND} - Indian court case monitoring</p>
  </div>
</body>
</html>"""
