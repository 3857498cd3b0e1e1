from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.template import HttpMethod


class SiteProfile(BaseModel):
    """Template defaults for one known recruitment site."""

    site_id: str
    display_name: Optional[str] = None
    hosts: List[str] = Field(default_factory=list)
    aliases: List[str] = Field(default_factory=list)
    endpoint: Optional[str] = None
    method: HttpMethod = HttpMethod.GET
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None
    data_path: Optional[str] = None
    mapping: Optional[Dict[str, str]] = None
    detail_url_template: Optional[str] = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @field_validator("site_id")
    @classmethod
    def _normalize_site_id(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("hosts")
    @classmethod
    def _lower_hosts(cls, value: List[str]) -> List[str]:
        return [host.strip().lower() for host in value if host and host.strip()]

    def matches_url(self, url: str) -> bool:
        try:
            host = (urlparse(url).hostname or "").lower()
        except ValueError:
            return False
        if not host:
            return False
        return any(host == known or host.endswith(f".{known}") for known in self.hosts)

    def matches_site(self, site_type: str | None, url: str | None = None) -> bool:
        if site_type and site_type.strip().lower() == self.site_id:
            return True
        if url and self.matches_url(url):
            return True
        return False

    def detail_url(self, external_job_id: Any) -> Optional[str]:
        if not self.detail_url_template or external_job_id in (None, ""):
            return None
        return self.detail_url_template.replace("{external_job_id}", str(external_job_id))
