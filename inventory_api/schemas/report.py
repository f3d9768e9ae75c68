"""Reporting filter and export format definitions."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    PDF = "pdf"


class ReportFilter(BaseModel):
    """Narrows a report; every field is optional.

    ``category`` and ``location`` match case-insensitively as substrings;
    the date bounds apply to action timestamps and are inclusive. Naive
    datetimes are taken to be UTC.
    """

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category: Optional[str] = None
    location: Optional[str] = None
    item_id: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        return self
