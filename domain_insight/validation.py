import re

import tldextract

LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
MAX_DOMAIN_LENGTH = 253

# bundled public suffix snapshot only, never fetched at runtime
_extract = tldextract.TLDExtract(suffix_list_urls=())


class InvalidDomain(ValueError):
    pass


def normalize_domain(raw: str) -> str:
    """
    Turn user input ("https://Example.com/path", "example.com.") into a bare,
    lower-cased hostname, or raise InvalidDomain.
    """
    if not raw or not isinstance(raw, str) or not raw.strip():
        raise InvalidDomain("Domain is required")

    domain = raw.strip().lower()
    if "://" in domain:
        domain = domain.split("://", 1)[1]
    domain = domain.split("/", 1)[0].split("?", 1)[0].split(":", 1)[0].rstrip(".")

    if len(domain) > MAX_DOMAIN_LENGTH or "." not in domain:
        raise InvalidDomain("Invalid domain format")
    if not all(LABEL_RE.match(label) for label in domain.split(".")):
        raise InvalidDomain("Invalid domain format")

    ext = _extract(domain)
    if not ext.suffix or not ext.domain:
        raise InvalidDomain(f"Unknown public suffix in {domain}")
    return domain
