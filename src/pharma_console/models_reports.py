from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import EntryType, PaginationEnvelope, ProductRef, coerce_entry_type


class PurchaseSummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_transactions: int = 0
    total_amount: Decimal = Decimal("0")
    average_transaction: Decimal = Decimal("0")
    manual_entries: int = 0
    automatic_entries: int = 0


class PurchasePatient(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    first_name: str | None = None
    last_name: str | None = None
    identification_number: str | None = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class PurchasePharmacy(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    commercial_name: str | None = None
    identification_number: str | None = None


class ProductDose(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    product_id: int | None = None
    dose: str | None = None


class PurchaseLine(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    product_id: int | None = None
    product_dose_id: int | None = None
    quantity: int = 0
    unit_price: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")
    product: ProductRef | None = None
    product_dose: ProductDose | None = None


class PurchaseTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    patient_id: int | None = None
    pharmacy_id: int | None = None
    sub_pharmacy_id: int | None = None
    created_by: str | None = None
    pharmacy_name: str | None = None
    transaction_date: datetime | None = None
    invoice_number: str | None = None
    total: Decimal = Decimal("0")
    entry_type: EntryType | None = None
    invoice_file_url: str | None = None
    patient: PurchasePatient | None = None
    pharmacy: PurchasePharmacy | None = None
    products: list[PurchaseLine] = Field(default_factory=list)

    @field_validator("entry_type", mode="before")
    @classmethod
    def _known_entry_type(cls, value: Any) -> EntryType | None:
        return coerce_entry_type(value)


class PurchaseReport(BaseModel):
    model_config = ConfigDict(extra="allow")

    summary: PurchaseSummary = Field(default_factory=PurchaseSummary)
    transactions: PaginationEnvelope[PurchaseTransaction]

    @property
    def pagination(self) -> PaginationEnvelope[PurchaseTransaction]:
        return self.transactions


class PharmacySalesRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    commercial_name: str | None = None
    identification_number: str | None = None
    total_transactions: int = 0
    total_sales: Decimal = Decimal("0")
    average_transaction: Decimal = Decimal("0")
    unique_patients: int = 0


class ProductSalesRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    dose: str | None = None
    total_quantity: Decimal = Decimal("0")
    total_revenue: Decimal = Decimal("0")
    pharmacies_count: int = 0
    patients_count: int = 0
