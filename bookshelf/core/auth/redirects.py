"""Post-authentication redirect target computation."""

DEFAULT_NEXT_PATH = "/"


def safe_next_path(next_path: str | None) -> str:
    """Only site-relative paths are accepted; anything else falls back to ``/``."""
    if not next_path or not next_path.startswith("/"):
        return DEFAULT_NEXT_PATH
    return next_path


def resolve_redirect(
    origin: str,
    forwarded_host: str | None,
    next_path: str | None,
    is_dev_environment: bool,
) -> str:
    """
    Compute the absolute URL to send the user to after authentication.

    - In development the request origin is used as-is (there is no proxy).
    - Behind a proxy the ``x-forwarded-host`` value wins and https is assumed.
    - Otherwise the request origin is used.

    Example:
        >>> resolve_redirect("https://app.example", "books.example", "/shelf", False)
        'https://books.example/shelf'
        >>> resolve_redirect("http://localhost:3000", "ignored.example", "https://evil.example", True)
        'http://localhost:3000/'
    """
    path = safe_next_path(next_path)
    base = origin.rstrip("/")

    if is_dev_environment:
        return f"{base}{path}"
    if forwarded_host:
        return f"https://{forwarded_host}{path}"
    return f"{base}{path}"
