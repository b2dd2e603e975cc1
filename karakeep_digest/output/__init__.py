from .email import build_message, build_subject, send_digest, verify_smtp_connection
from .renderer import format_date, reader_link, render_html, render_plain_text

__all__ = [
    "build_message",
    "build_subject",
    "format_date",
    "reader_link",
    "render_html",
    "render_plain_text",
    "send_digest",
    "verify_smtp_connection",
]
