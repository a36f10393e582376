"""Domain Names — normalization and candidate generation for domain search.

Invariants:
    - normalize_domain is idempotent
    - split_domain defaults the TLD to "com" when the input has no dot
    - Alternate candidates never repeat the primary TLD and keep the configured order
    - Registrations expire exactly one calendar year after creation
"""

import re
from datetime import datetime

from nexus.core.errors import MalformedInput

DEFAULT_TLD = "com"

_SCHEME_RE = re.compile(r"^https?://")
_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def normalize_domain(raw: str) -> str:
    """Trim, lowercase, strip scheme and trailing slash."""
    if not isinstance(raw, str):
        raise MalformedInput("domain must be a string", "domain")
    domain = raw.strip().lower()
    domain = _SCHEME_RE.sub("", domain)
    domain = domain.rstrip("/")
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def split_domain(domain: str) -> tuple[str, str]:
    """Split "sld.tld" (multi-part TLDs kept whole: "a.com.pt" → ("a", "com.pt"))."""
    parts = domain.split(".")
    sld = parts[0]
    tld = ".".join(parts[1:]) if len(parts) >= 2 else DEFAULT_TLD
    return sld, tld


def parse_domain(raw: str) -> tuple[str, str, str]:
    """Normalize and validate; returns (domain, sld, tld)."""
    domain = normalize_domain(raw)
    if not domain:
        raise MalformedInput("domain is required", "domain")
    sld, tld = split_domain(domain)
    labels = [sld, *tld.split(".")]
    if not all(_LABEL_RE.match(label) for label in labels):
        raise MalformedInput(f"'{raw.strip()}' is not a valid domain name", "domain")
    if "." not in domain:
        domain = f"{sld}.{tld}"
    return domain, sld, tld


def alternate_candidates(sld: str, primary_tld: str, tlds: list[str]) -> list[tuple[str, str]]:
    """(domain, tld) for each alternate TLD, excluding the primary."""
    return [(f"{sld}.{tld}", tld) for tld in tlds if tld != primary_tld]


def registration_expiry(created_at: datetime, years: int = 1) -> datetime:
    """created_at + N years; Feb 29 falls back to Feb 28."""
    try:
        return created_at.replace(year=created_at.year + years)
    except ValueError:
        return created_at.replace(year=created_at.year + years, day=28)
