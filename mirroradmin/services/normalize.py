"""
Normalization of operator-supplied mirror attributes.
"""
import re
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from mirroradmin.core.exceptions import ValidationError
from mirroradmin.models.mirror import Mirror

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def normalize_url(url: str, default_scheme: Optional[str] = None) -> str:
    """Canonicalize a mirror base URL.

    Lower-cases the scheme and host, prefixes ``default_scheme`` when the URL
    has none, and ends the URL with exactly one slash. Applying it twice
    gives the same result.

    Raises ValidationError when a URL with a scheme cannot be parsed or has
    no host.
    """
    url = url.strip()
    if not url:
        return ""

    if _SCHEME_RE.match(url):
        try:
            parts = urlsplit(url)
        except ValueError as e:
            raise ValidationError(f"Can't parse URL {url}: {e}") from e
        if not parts.netloc:
            raise ValidationError(f"Can't parse URL {url}: no host")
        netloc = parts.netloc
        if "@" in netloc:
            userinfo, _, host = netloc.rpartition("@")
            netloc = f"{userinfo}@{host.lower()}"
        else:
            netloc = netloc.lower()
        url = urlunsplit((parts.scheme.lower(), netloc, parts.path, parts.query, parts.fragment))
    elif default_scheme:
        return normalize_url(f"{default_scheme}://{url}")

    return url.rstrip("/") + "/"


def normalize_country_codes(codes: str) -> str:
    """``"fr, de"`` -> ``"FR DE"``."""
    return " ".join(code.upper() for code in codes.replace(",", " ").split())


def normalize_mirror(mirror: Mirror) -> Mirror:
    """Return a copy of ``mirror`` with codes and endpoint URLs normalized."""
    return mirror.model_copy(update={
        "country_codes": normalize_country_codes(mirror.country_codes),
        "continent_code": mirror.continent_code.strip().upper(),
        "http_url": normalize_url(mirror.http_url, default_scheme="http"),
        "rsync_url": normalize_url(mirror.rsync_url),
        "ftp_url": normalize_url(mirror.ftp_url),
    })
