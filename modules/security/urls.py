"""Redirect and callback URL checks."""

from urllib.parse import urljoin, urlsplit


def _origin(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme.lower(), parts.netloc.lower()


def sanitize_redirect_url(url: str, base_url: str) -> str:
    """Resolve ``url`` against ``base_url``; anything off-origin collapses to ``base_url``."""
    try:
        resolved = urljoin(base_url, url)
        if _origin(resolved) == _origin(base_url):
            return resolved
    except ValueError:
        pass
    return base_url


def is_valid_callback_url(url: str, allowed_urls: list[str]) -> bool:
    """True if ``url`` is absolute and shares an origin with one of ``allowed_urls``."""
    try:
        scheme, netloc = _origin(url)
    except ValueError:
        return False
    if not scheme or not netloc:
        return False
    return any(_origin(allowed) == (scheme, netloc) for allowed in allowed_urls)
