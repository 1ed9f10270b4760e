from fastapi import Request

from ..logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Request Utilities
# =============================================================================


def url_origin(request: Request) -> str:
    """Origin (scheme://host[:port]) of the URL the request was made to."""
    return f"{request.url.scheme}://{request.url.netloc}"


def request_origin(request: Request) -> str:
    """
    Origin the browser reports for a form post, falling back to the request URL.

    Top-level GET navigations (such as the provider callback) carry no Origin
    header, so those always end up on the fallback.
    """
    origin = request.headers.get("origin", "").strip()
    if origin and origin != "null":
        return origin.rstrip("/")
    return url_origin(request)


# =============================================================================
# Input Utilities
# =============================================================================


def normalize_email(email: str | None) -> str | None:
    """
    Strip and lower-case an email address, rejecting obviously malformed ones.

    Returns:
        The normalized email, or None if it is blank or not shaped like an email.
    """
    if not email:
        return None

    email = email.strip().lower()
    local_part, sep, domain_part = email.partition("@")
    if not sep or not local_part or "@" in domain_part or "." not in domain_part:
        return None
    return email


def mask_email(email: str | None) -> str:
    """
    Mask an email for logging, keeping the first character and the domain.

    Example:
        >>> mask_email("reader@example.com")
        'r*****@example.com'
    """
    if not email:
        return ""

    local_part, sep, domain_part = email.partition("@")
    if not sep:
        return "*" * len(email)
    return local_part[:1] + "*" * max(len(local_part) - 1, 0) + "@" + domain_part
