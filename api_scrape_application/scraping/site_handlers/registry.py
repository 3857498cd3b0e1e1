from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import yaml
from pydantic import ValidationError

from ...config import resolve_config_path, settings
from ..exceptions import ConfigurationError
from .base import SiteProfile

logger = logging.getLogger("scrape.sites")


class SiteRegistry:
    """Known site profiles, looked up by site id or by URL host."""

    def __init__(self, profiles: Iterable[SiteProfile] = ()) -> None:
        self._profiles: Dict[str, SiteProfile] = {}
        for profile in profiles:
            if profile.site_id in self._profiles:
                logger.warning("Duplicate site profile %s; keeping the last entry", profile.site_id)
            self._profiles[profile.site_id] = profile

    def __iter__(self) -> Iterator[SiteProfile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)

    def site_ids(self) -> List[str]:
        return list(self._profiles)

    def get(self, site_id: str | None) -> Optional[SiteProfile]:
        if not site_id:
            return None
        return self._profiles.get(site_id.strip().lower())

    def match_url(self, url: str | None) -> Optional[SiteProfile]:
        if not url:
            return None
        for profile in self._profiles.values():
            if profile.matches_url(url):
                return profile
        return None

    def resolve(self, site_id: str | None = None, url: str | None = None) -> Optional[SiteProfile]:
        return self.get(site_id) or self.match_url(url)

    def aliases(self) -> Dict[str, str]:
        """Map each alias (e.g. a company nickname) to its canonical site tag."""

        mapping: Dict[str, str] = {}
        for profile in self._profiles.values():
            for alias in profile.aliases:
                if alias:
                    mapping[alias] = profile.site_id
        return mapping


def _parse_profiles(raw: Any, source: Path) -> List[SiteProfile]:
    entries = raw.get("sites") if isinstance(raw, dict) else raw
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigurationError(f"Site registry {source} must contain a 'sites' list", status_code=500)
    profiles: List[SiteProfile] = []
    for entry in entries:
        try:
            profiles.append(SiteProfile.model_validate(entry))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid site profile in {source}: {exc}", status_code=500) from exc
    return profiles


def load_site_registry(path: Path | str | None = None) -> SiteRegistry:
    source = Path(path) if path else Path(settings.site_registry_path or resolve_config_path("sites.yaml"))
    if not source.exists():
        logger.warning("Site registry %s not found; no known sites loaded", source)
        return SiteRegistry()
    try:
        raw = yaml.safe_load(source.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Site registry {source} is not valid YAML: {exc}", status_code=500) from exc
    registry = SiteRegistry(_parse_profiles(raw, source))
    logger.debug("Loaded %s site profiles from %s", len(registry), source)
    return registry


_default_registry: SiteRegistry | None = None


def get_site_registry() -> SiteRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = load_site_registry()
    return _default_registry


def _set_site_registry_for_tests(registry: SiteRegistry | None) -> None:
    global _default_registry
    _default_registry = registry
