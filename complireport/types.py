from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ContentError
from .report.fingerprint import fingerprint


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExportSuffix(str, Enum):
    report = 'Report'
    latest_result = 'Latest_Result'
    all_results = 'All_Results'


class ReportPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    entity_name: str | None = Field(default=None, alias='entityName')
    entity_type: str | None = Field(default=None, alias='entityType')
    jurisdiction: str | None = None
    filing_type: str | None = Field(default=None, alias='filingType')
    deadline: str | None = None


class TimelineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    milestone: str | None = None
    owner: str | None = None
    due_date: str | None = Field(default=None, validation_alias=AliasChoices('due_date', 'dueDate', 'due'))
    notes: str | None = None


class RiskItem(BaseModel):
    model_config = ConfigDict(extra='ignore')

    risk: str | None = None
    severity: str | None = None
    likelihood: str | None = None
    mitigation: str | None = None


class GeneratedContent(BaseModel):
    """Structured AI output. ``None`` means absent; ``[]`` means present but empty."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    summary: str | None = None
    checklist: list[str] | None = None
    timeline: list[TimelineItem] | None = None
    risk_matrix: list[RiskItem] | None = Field(default=None, alias='riskMatrix')
    recommendations: list[str] | None = None
    references: list[str] | None = None


class BrandingConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    toolkit_name: str = Field(alias='toolkitName')
    icon_url: str = Field(default='', alias='iconUrl')
    brand_line: str = Field(alias='brandLine')


class RenderedReport(BaseModel):
    """Canonical markup and its fingerprint.

    The checksum is computed here from the markup; passing one that disagrees
    is rejected.
    """

    model_config = ConfigDict(frozen=True)

    markup: str
    checksum: str = ''
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='before')
    @classmethod
    def _stamp_checksum(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        actual = fingerprint(str(data.get('markup') or ''))
        given = str(data.get('checksum') or '').strip().lower()
        if given and given != actual:
            raise ValueError(f'checksum {given} does not match markup fingerprint {actual}')
        return {**data, 'checksum': actual}


class StoredReport(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    payload: ReportPayload = Field(default_factory=ReportPayload)
    content: GeneratedContent = Field(default_factory=GeneratedContent)
    html_content: str = Field(validation_alias=AliasChoices('html_content', 'htmlContent'))
    checksum: str
    created_at: datetime = Field(default_factory=utcnow)


def _content_field_keys(name: str) -> tuple[str, ...]:
    info = GeneratedContent.model_fields[name]
    if info.alias and info.alias != name:
        return (name, info.alias)
    return (name,)


def _coerce_field(name: str, value: Any) -> Any:
    try:
        parsed = GeneratedContent.model_validate({name: value})
    except ValidationError as exc:
        first = exc.errors()[0]
        raise ContentError(name, str(first.get('msg') or 'invalid value')) from exc
    return getattr(parsed, name)


def coerce_content(raw: dict[str, Any] | None) -> GeneratedContent:
    """Build content field by field, dropping malformed fields to absent."""
    source = raw if isinstance(raw, dict) else {}
    values: dict[str, Any] = {}
    for name in GeneratedContent.model_fields:
        present = [key for key in _content_field_keys(name) if key in source]
        if not present:
            continue
        value = source[present[0]]
        if value is None:
            continue
        try:
            values[name] = _coerce_field(name, value)
        except ContentError as exc:
            logger.warning('Malformed report content; rendering placeholder instead (%s)', exc)
    return GeneratedContent(**values)


def coerce_payload(raw: dict[str, Any] | None) -> ReportPayload:
    source = raw if isinstance(raw, dict) else {}
    cleaned: dict[str, Any] = {}
    for key, value in source.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        cleaned[key] = str(value)
    return ReportPayload.model_validate(cleaned)
