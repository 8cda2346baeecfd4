"""
Object key normalization shared by every adapter.

Keys arrive in many shapes ("./a/b", "/a/b", "a\\b", "") and must map to the
same backend key regardless of which adapter is active.
"""

import re
from urllib.parse import quote, urlsplit

# Longest lifetime accepted by S3-compatible presigners.
SEVEN_DAYS = 7 * 24 * 3600

_SEPARATOR_RUN = re.compile(r"/{2,}")


def object_rel(key: str) -> str:
    """
    Normalize a key to its backend-relative form.

    Backslashes become forward slashes, repeated separators collapse, and
    any leading "./" or "/" segments are removed.

    Args:
        key: User-supplied object key

    Returns:
        Key without a leading separator (empty string for an empty key)
    """
    key = (key or "").replace("\\", "/")
    key = _SEPARATOR_RUN.sub("/", key)
    while True:
        if key.startswith("./"):
            key = key[2:]
        elif key.startswith("/"):
            key = key[1:]
        else:
            break
    if key == ".":
        return ""
    return key


def object_abs(key: str) -> str:
    """Normalize a key to its absolute form (exactly one leading "/")."""
    return "/" + object_rel(key)


def normalize_domain(domain: str) -> str:
    """Strip surrounding whitespace and trailing slashes from a domain."""
    return (domain or "").strip().rstrip("/")


def public_url(domain: str, key: str) -> str:
    """Build the direct URL of an object under a public domain."""
    return normalize_domain(domain) + quote(object_abs(key), safe="/~")


def substitute_domain(url: str, domain: str) -> str:
    """
    Re-root a signed URL under the configured domain.

    Presigners return URLs on the backend's own host. When that host differs
    from the public domain, the path and query are kept and placed under the
    domain instead.
    """
    domain = normalize_domain(domain)
    if not domain or url.startswith(domain):
        return url

    parts = urlsplit(url)
    request_uri = parts.path or "/"
    if parts.query:
        request_uri = f"{request_uri}?{parts.query}"
    return domain + request_uri
