from __future__ import annotations

from dataclasses import dataclass

from ..filters import FilterCriteria
from ..models import PaginationEnvelope
from ..models_redemptions import (
    PatientProductRedemptionRow,
    PharmacyRedemptionRow,
    ProductRedemptionRow,
    RedemptionDetail,
)
from ..queries import DateRangeQuery, PatientProductQuery, PharmacyDateRangeQuery, RedemptionDetailsQuery
from .base import BaseClient, build_query, parse_list, parse_model


@dataclass
class RedemptionsClient(BaseClient):
    def get_pharmacy_redemption_report(
        self, filters: FilterCriteria | DateRangeQuery | None = None
    ) -> list[PharmacyRedemptionRow]:
        query = build_query(DateRangeQuery, filters)
        data = self._get_data("/reports/redemptions/pharmacy", query.to_params())
        return parse_list(PharmacyRedemptionRow, data, path="pharmacy redemption report")

    def get_redemption_details_report(
        self, filters: FilterCriteria | RedemptionDetailsQuery | None = None
    ) -> PaginationEnvelope[RedemptionDetail]:
        query = build_query(RedemptionDetailsQuery, filters)
        data = self._get_data("/reports/redemptions/details", query.to_params())
        return parse_model(PaginationEnvelope[RedemptionDetail], data, path="redemption details report")

    def get_product_redemption_report(
        self, filters: FilterCriteria | PharmacyDateRangeQuery | None = None
    ) -> list[ProductRedemptionRow]:
        query = build_query(PharmacyDateRangeQuery, filters)
        data = self._get_data("/reports/redemptions/products", query.to_params())
        return parse_list(ProductRedemptionRow, data, path="product redemption report")

    def get_patient_product_redemption_report(
        self, filters: FilterCriteria | PatientProductQuery | None = None
    ) -> PaginationEnvelope[PatientProductRedemptionRow]:
        query = build_query(PatientProductQuery, filters)
        data = self._get_data("/reports/redemptions/patients-products", query.to_params())
        return parse_model(
            PaginationEnvelope[PatientProductRedemptionRow], data, path="patient product redemption report"
        )
