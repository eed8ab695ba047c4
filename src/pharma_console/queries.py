from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .filters import FilterCriteria
from .models import EntryType


class ReportQuery(BaseModel):
    """Base for per-endpoint query models.

    Each subclass declares only the wire fields its endpoint accepts, so building one from a
    FilterCriteria snapshot drops everything else.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_criteria(cls, criteria: FilterCriteria) -> "ReportQuery":
        return cls.model_validate(criteria.model_dump())

    def to_params(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class DateRangeQuery(ReportQuery):
    start_date: date | None = None
    end_date: date | None = None


class PharmacyDateRangeQuery(DateRangeQuery):
    pharmacy_id: int | None = None


class PurchaseQuery(PharmacyDateRangeQuery):
    entry_type: EntryType | None = None
    page: int | None = None
    per_page: int | None = None


class RedemptionDetailsQuery(PharmacyDateRangeQuery):
    page: int | None = None
    per_page: int | None = None


class PatientProductQuery(PharmacyDateRangeQuery):
    patient_id: int | None = None
    product_id: int | None = None
    search: str | None = Field(default=None, validation_alias="search_text", serialization_alias="search")
    page: int | None = None
    per_page: int | None = None


class InvoiceGapQuery(ReportQuery):
    pharmacy_id: int | None = None
    is_resolved: bool | None = None
    from_date: date | None = Field(default=None, validation_alias="start_date", serialization_alias="from_date")
    to_date: date | None = Field(default=None, validation_alias="end_date", serialization_alias="to_date")

    @field_serializer("is_resolved")
    def _lower_bool(self, value: bool | None) -> str | None:
        if value is None:
            return None
        return "true" if value else "false"


class TransactionQuery(ReportQuery):
    pharmacy_id: int | None = None
    date_from: date | None = Field(default=None, validation_alias="start_date", serialization_alias="date_from")
    date_to: date | None = Field(default=None, validation_alias="end_date", serialization_alias="date_to")
    entry_type: EntryType | None = None
    patient_id: int | None = None
    name: str | None = Field(default=None, validation_alias="patient_name", serialization_alias="name")
    email: str | None = None
    identification_number: str | None = None
    page: int | None = None
    per_page: int | None = None
