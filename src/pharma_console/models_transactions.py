from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from .models import EntryType, coerce_entry_type


class TransactionPatient(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    first_name: str | None = None
    last_name: str | None = None
    second_last_name: str | None = None
    identification_number: str | None = None
    email: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        parts = (self.first_name, self.last_name, self.second_last_name)
        return " ".join(part for part in parts if part)


class TransactionPharmacy(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    commercial_name: str | None = None
    legal_name: str | None = None


class TransactionProduct(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str


class TransactionProductDose(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    dose: str | None = None
    promotion_buy: int | None = None
    promotion_get: int | None = None
    product: TransactionProduct | None = None


class TransactionRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    patient_id: int | None = None
    pharmacy_id: int | None = None
    product_dose_id: int | None = None
    entry_type: EntryType | None = None
    redemption_date: datetime | None = None
    created_at: datetime | None = None
    patient: TransactionPatient | None = None
    pharmacy: TransactionPharmacy | None = None
    product_dose: TransactionProductDose | None = None

    @field_validator("entry_type", mode="before")
    @classmethod
    def _known_entry_type(cls, value: Any) -> EntryType | None:
        return coerce_entry_type(value)
