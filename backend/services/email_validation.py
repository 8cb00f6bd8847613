"""
NAE Test Sheets - Email Validation
Version: 1.0.1

Changelog:
v1.0.1 (2026-10-19): Shape check matches the whole string (no trailing newline)
v1.0.0 (2026-09-28): Allowed-domain check, error messages, display names

Only addresses on the configured domains (@nae.co.za, @gmail.com by default)
may sign in. Checks are case-insensitive.
"""

import re
from typing import Optional, Sequence

from config import settings

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MSG_REQUIRED = "Email address is required"
MSG_MALFORMED = "Please enter a valid email address"


def _allowed_domains(domains: Optional[Sequence[str]]) -> Sequence[str]:
    return domains if domains is not None else settings.ALLOWED_EMAIL_DOMAINS


def domain_message(domains: Optional[Sequence[str]] = None) -> str:
    names = " and ".join(_allowed_domains(domains))
    return f"Only {names} email addresses are allowed"


def is_valid_email_shape(email) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.fullmatch(email))


def is_allowed_email_domain(email, domains: Optional[Sequence[str]] = None) -> bool:
    """True iff the address is well formed and ends with an allowed domain"""
    if not email or not is_valid_email_shape(email):
        return False
    normalized = email.lower()
    return any(normalized.endswith(d.lower()) for d in _allowed_domains(domains))


def get_email_validation_error(email, domains: Optional[Sequence[str]] = None) -> str:
    """
    Describe why an email is rejected, or return "" when it is accepted.

    The three failures are distinct: missing, malformed, disallowed domain.
    A malformed address never gets the domain message.
    """
    if not email:
        return MSG_REQUIRED
    if not is_valid_email_shape(email):
        return MSG_MALFORMED
    if not is_allowed_email_domain(email, domains):
        return domain_message(domains)
    return ""


def get_display_name_from_email(email) -> str:
    """'john.doe@x.com' -> 'John Doe'; fallback when a user has no name set"""
    if not email or "@" not in email:
        return email or "User"
    local_part = email.split("@")[0]
    spaced = re.sub(r"[._]", " ", local_part)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)
