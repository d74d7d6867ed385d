"""Template variable substitution for outbound messages.

Placeholders are case-insensitive: {{FIRST_NAME}}, {{LAST_NAME}}, {{NAME}},
{{EMAIL}}, {{COMPANY}}, {{POSITION}}. Missing contact fields render empty.
"""

import re
from typing import Optional

from models.contact import ContactSnapshot

_PLACEHOLDER = re.compile(r"\{\{\s*(FIRST_NAME|LAST_NAME|NAME|EMAIL|COMPANY|POSITION)\s*\}\}", re.IGNORECASE)
_HTML_MARKERS = ("<p>", "<br", "<div")


def _variable_value(name: str, contact: ContactSnapshot) -> str:
    match name.upper():
        case "FIRST_NAME":
            return contact.first_name
        case "LAST_NAME":
            return contact.last_name
        case "NAME":
            return contact.name or ""
        case "EMAIL":
            return contact.email or ""
        case "COMPANY":
            return contact.company or ""
        case "POSITION":
            return contact.title or ""
    return ""


def render_template(template: Optional[str], contact: ContactSnapshot) -> str:
    """Substitute contact fields into a message template."""
    if not template:
        return ""
    return _PLACEHOLDER.sub(lambda m: _variable_value(m.group(1), contact), template)


def to_html(body: str, markers=_HTML_MARKERS) -> str:
    """Turn a plain-text body into HTML line breaks; leave HTML bodies alone."""
    if any(marker in body for marker in markers):
        return body
    return body.replace("\n", "<br>")


def append_signature(body: str, signature: Optional[str]) -> str:
    """Append the sender's signature below a separator."""
    if not signature:
        return body
    sig = to_html(signature, markers=("<p>", "<br"))
    return (
        f'{body}<br/><br/><div style="border-top:1px solid #e2e8f0;padding-top:12px;'
        f'color:#64748b;font-size:13px;">{sig}</div>'
    )
