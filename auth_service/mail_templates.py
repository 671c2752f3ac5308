"""HTML bodies for account emails."""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape

_LAYOUT = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; color: #333333; background-color: #f9f9f9; margin: 0; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; background-color: #ffffff; border-radius: 8px; }}
    .title {{ color: #D61E1E; font-size: 24px; font-weight: bold; margin-bottom: 20px; }}
    .button {{ display: inline-block; background-color: #D61E1E; color: #ffffff !important; text-decoration: none; padding: 12px 30px; border-radius: 4px; font-weight: bold; }}
    .note {{ font-size: 13px; color: #777777; }}
    .footer {{ text-align: center; padding: 20px; color: #666666; font-size: 14px; border-top: 1px solid #eeeeee; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="title">{title}</div>
    <p>{message}</p>
    <a href="{link}" class="button">{action}</a>
    <p class="note">{expiry_note}</p>
    <p class="note">If the button doesn't work, copy and paste this link into your browser:</p>
    <p style="word-break: break-all; font-size: 12px; color: #777777;">{link}</p>
    <div class="footer">&copy; {year} All rights reserved.</div>
  </div>
</body>
</html>
"""


def _render(*, title: str, message: str, action: str, link: str, expiry_note: str) -> str:
    return _LAYOUT.format(
        title=title,
        message=message,
        action=action,
        link=escape(link, quote=True),
        expiry_note=expiry_note,
        year=datetime.now(timezone.utc).year,
    )


def describe_ttl(seconds: int) -> str:
    """Render a TTL as 'N days', 'N hours' or 'N minutes', whichever divides it evenly."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size and seconds % size == 0:
            count = seconds // size
            return f"{count} {unit}" if count == 1 else f"{count} {unit}s"
    return f"{seconds} seconds"


def activation_email(link: str, ttl_seconds: int) -> str:
    return _render(
        title="Activate Your Account",
        message="Thanks for signing up. Confirm your email address to activate your account:",
        action="Activate Account",
        link=link,
        expiry_note=(
            f"This link will expire in {describe_ttl(ttl_seconds)}. "
            "If you didn't create an account, ignore this email."
        ),
    )


def reset_password_email(link: str, ttl_seconds: int) -> str:
    return _render(
        title="Reset Your Password",
        message="We received a request to reset your password. Click the button below to create a new password:",
        action="Reset Password",
        link=link,
        expiry_note=(
            f"This link will expire in {describe_ttl(ttl_seconds)}. If you didn't request a password reset, "
            "you can safely ignore this email; your password will remain unchanged."
        ),
    )
