from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from ...config import runtime_config
from ...constants import DEFAULT_SOURCE_WEBSITE
from ..exceptions import ConfigurationError
from ..helpers.pagination import PaginationPlan, detect_pagination


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"


class FieldMapping(BaseModel):
    """Logical job field -> dot path inside one raw job record."""

    title: str
    external_job_id: str
    company: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    salary_min: Optional[str] = None
    salary_max: Optional[str] = None
    experience_level: Optional[str] = None
    job_type: Optional[str] = None
    skills: Optional[str] = None
    original_url: Optional[str] = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    def path_for(self, field_name: str) -> Optional[str]:
        value = getattr(self, field_name, None)
        return value if isinstance(value, str) and value else None


class RequestTemplate(BaseModel):
    """Declarative description of one page request against a third-party API.

    The JSON document form uses ``dataPath`` (camelCase) as stored by the
    configuration UI; ``from_document``/``to_document`` round-trip it. The
    pagination style is detected once here and reused for every page.
    """

    url: str
    method: HttpMethod = HttpMethod.GET
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None
    data_path: str = Field(alias="dataPath")
    mapping: FieldMapping
    source_website: str = Field(default=DEFAULT_SOURCE_WEBSITE, alias="sourceWebsite")
    rate_limit_ms: Optional[int] = Field(default=None, alias="rateLimitMs")

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    _pagination: PaginationPlan = PrivateAttr()

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("headers", mode="before")
    @classmethod
    def _stringify_headers(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    def model_post_init(self, __context: Any) -> None:
        self._pagination = detect_pagination(
            self.url, self.method.value, self.body, default_page_size=runtime_config.default_page_size
        )

    @property
    def pagination(self) -> PaginationPlan:
        return self._pagination

    @classmethod
    def from_document(cls, document: Any) -> "RequestTemplate":
        if isinstance(document, (bytes, bytearray)):
            document = document.decode()
        if isinstance(document, str):
            try:
                document = json.loads(document)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(f"Request template is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise ConfigurationError("Request template must be a JSON object")
        try:
            return cls.model_validate(document)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid request template: {exc}") from exc

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


def load_template_file(path: Path) -> RequestTemplate:
    """Load a template document from a ``.json``/``.yaml``/``.yml`` file."""

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        return RequestTemplate.from_document(yaml.safe_load(text))
    return RequestTemplate.from_document(text)
