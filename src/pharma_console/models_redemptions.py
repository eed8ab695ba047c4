from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class PharmacyRedemptionRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    commercial_name: str | None = None
    identification_number: str | None = None
    total_redemptions: int = 0
    total_quantity_redeemed: Decimal = Decimal("0")
    total_quantity_received: Decimal = Decimal("0")
    unique_patients: int = 0
    unique_products: int = 0


class RedemptionDetail(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    redemption_date: date | datetime | None = None
    pharmacy_name: str | None = None
    sub_pharmacy_name: str | None = None
    patient_name: str | None = None
    patient_identification: str | None = None
    product_name: str | None = None
    product_dose: str | None = None
    quantity_redeemed: int = 0
    quantity_received: int = 0
    notes: str | None = None


class ProductRedemptionRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    dose: str | None = None
    total_redemptions: int = 0
    total_quantity_redeemed: Decimal = Decimal("0")
    total_quantity_received: Decimal = Decimal("0")
    pharmacies_count: int = 0
    patients_count: int = 0


class PatientProductRedemptionRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    patient_id: int
    patient_name: str | None = None
    patient_identification: str | None = None
    patient_email: str | None = None
    product_id: int
    product_name: str | None = None
    product_dose: str | None = None
    total_redemptions: int = 0
    total_quantity_redeemed: int = 0
    total_quantity_received: int = 0
    last_redemption_date: date | datetime | None = None
    pharmacies_count: int = 0
