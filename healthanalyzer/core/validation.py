"""
Write-side validation models.

Every record passes through one of these pydantic models before it is
inserted, so field invariants hold regardless of what the caller built.
Failures are reported as ConstraintError by the data access layer.
"""

from datetime import date, datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


def _require_text(v: str, name: str) -> str:
    if not v.strip():
        raise ValueError(f'{name} cannot be empty')
    return v


def _as_utc(v: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class _WriteModel(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)


class EntryWrite(_WriteModel):
    id: str
    date: date
    category: str
    input_text: str
    analysis_text: str = ""
    created_at: datetime

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        return _require_text(v, 'id')

    @field_validator('category')
    @classmethod
    def category_must_not_be_empty(cls, v):
        return _require_text(v, 'category')

    @field_validator('created_at')
    @classmethod
    def created_at_must_have_offset(cls, v):
        return _as_utc(v)


class FindingWrite(_WriteModel):
    id: str
    date: date
    finding_text: str
    categories: List[str] = Field(default_factory=list)
    created_at: datetime

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        return _require_text(v, 'id')

    @field_validator('created_at')
    @classmethod
    def created_at_must_have_offset(cls, v):
        return _as_utc(v)


class SummaryWrite(_WriteModel):
    id: str
    period_start: date
    period_end: date
    category: str
    summary_text: str
    created_at: datetime

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        return _require_text(v, 'id')

    @field_validator('category')
    @classmethod
    def category_must_not_be_empty(cls, v):
        return _require_text(v, 'category')

    @field_validator('created_at')
    @classmethod
    def created_at_must_have_offset(cls, v):
        return _as_utc(v)

    @model_validator(mode='after')
    def period_must_be_ordered(self):
        if self.period_start > self.period_end:
            raise ValueError('period_start must not be after period_end')
        return self


class MetricWrite(_WriteModel):
    id: str
    entry_id: str
    key: str
    value: float = Field(allow_inf_nan=False)
    created_at: datetime

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        return _require_text(v, 'id')

    @field_validator('entry_id')
    @classmethod
    def entry_id_must_not_be_empty(cls, v):
        return _require_text(v, 'entry_id')

    @field_validator('key')
    @classmethod
    def key_must_not_be_empty(cls, v):
        return _require_text(v, 'key')

    @field_validator('created_at')
    @classmethod
    def created_at_must_have_offset(cls, v):
        return _as_utc(v)


calendar_date = TypeAdapter(date)
