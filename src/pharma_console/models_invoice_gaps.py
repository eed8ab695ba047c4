from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import EntryType, PharmacyRef, SubPharmacyRef, UserRef, coerce_entry_type


class GapState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class AnomalyDetails(BaseModel):
    model_config = ConfigDict(extra="allow")

    reason: str | None = None
    max_similarity: float | None = None
    min_similarity: float | None = None
    pattern_similarity: float | None = None
    recent_invoices_sample: list[str] = Field(default_factory=list)


class GapTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    pharmacy_id: int | None = None
    sub_pharmacy_id: int | None = None
    pharmacy_name: str | None = None
    transaction_date: datetime | None = None
    invoice_number: str | None = None
    entry_type: EntryType | None = None

    @field_validator("entry_type", mode="before")
    @classmethod
    def _known_entry_type(cls, value: Any) -> EntryType | None:
        return coerce_entry_type(value)


class InvoiceGap(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    pharmacy_id: int
    sub_pharmacy_id: int | None = None
    expected_number: int | None = None
    received_number: int | None = None
    expected_pattern: str = ""
    received_pattern: str = ""
    similarity_score: float = Field(default=0.0, ge=0, le=100)
    is_anomaly: bool = False
    anomaly_details: AnomalyDetails | None = None
    missing_range: str | None = None
    detected_in_transaction_id: int | None = None
    is_resolved: bool = False
    resolution_notes: str | None = None
    resolved_at: datetime | None = None
    resolved_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pharmacy: PharmacyRef | None = None
    sub_pharmacy: SubPharmacyRef | None = None
    transaction: GapTransaction | None = None
    resolved_by_user: UserRef | None = None

    @property
    def state(self) -> GapState:
        return GapState.RESOLVED if self.is_resolved else GapState.PENDING


class PharmacyGapCount(BaseModel):
    model_config = ConfigDict(extra="allow")

    pharmacy_id: int
    gaps_count: int = 0
    pharmacy: PharmacyRef | None = None


class InvoiceGapStatistics(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_gaps: int = 0
    unresolved_gaps: int = 0
    resolved_gaps: int = 0
    gaps_this_month: int = 0
    pharmacies_with_most_gaps: list[PharmacyGapCount] = Field(default_factory=list)


class ResolveInvoiceGapRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resolution_notes: str | None = None

    @field_validator("resolution_notes", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value
