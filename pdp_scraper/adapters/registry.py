from typing import Optional, Tuple

import tldextract

from . import adapter_generic, adapter_mango, adapter_zara
from .profile import SiteProfile

GENERIC = adapter_generic.PROFILE

PROFILES: Tuple[SiteProfile, ...] = (
    adapter_zara.PROFILE,
    adapter_mango.PROFILE,
    # add more sites here...
)

# Bundled public suffix snapshot only, no network fetch.
_tld = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())


def _brand(domain: str) -> Optional[str]:
    ext = _tld(domain)
    return ext.domain.lower() if ext.domain and ext.suffix else None


def pick_profile(domain: Optional[str]) -> SiteProfile:
    """
    Exact domain, then subdomain of a known domain, then same brand under
    another TLD (zara.cn -> zara). Anything else gets the generic profile.
    """
    if not domain:
        return GENERIC
    domain = domain.lower()
    for profile in PROFILES:
        if domain in profile.domains:
            return profile
    for profile in PROFILES:
        if any(domain.endswith("." + d) for d in profile.domains):
            return profile
    brand = _brand(domain)
    if brand:
        for profile in PROFILES:
            if any(_brand(d) == brand for d in profile.domains):
                return profile
    return GENERIC
