from __future__ import annotations

from .base import SiteProfile
from .registry import SiteRegistry, get_site_registry, load_site_registry


def get_site_profile(
    url: str | None = None, site_type: str | None = None, registry: SiteRegistry | None = None
) -> SiteProfile | None:
    if not url and not site_type:
        return None
    return (registry or get_site_registry()).resolve(site_type, url)


__all__ = [
    "SiteProfile",
    "SiteRegistry",
    "get_site_profile",
    "get_site_registry",
    "load_site_registry",
]
