from __future__ import annotations

from dataclasses import dataclass

from ..filters import FilterCriteria
from ..models_reports import PharmacySalesRow, ProductSalesRow, PurchaseReport
from ..queries import DateRangeQuery, PharmacyDateRangeQuery, PurchaseQuery
from .base import BaseClient, build_query, parse_list, parse_model


@dataclass
class ReportsClient(BaseClient):
    def get_purchase_report(self, filters: FilterCriteria | PurchaseQuery | None = None) -> PurchaseReport:
        query = build_query(PurchaseQuery, filters)
        data = self._get_data("/reports/purchases", query.to_params())
        return parse_model(PurchaseReport, data, path="purchase report")

    def get_pharmacy_sales_report(
        self, filters: FilterCriteria | DateRangeQuery | None = None
    ) -> list[PharmacySalesRow]:
        query = build_query(DateRangeQuery, filters)
        data = self._get_data("/reports/pharmacy-sales", query.to_params())
        return parse_list(PharmacySalesRow, data, path="pharmacy sales report")

    def get_product_sales_report(
        self, filters: FilterCriteria | PharmacyDateRangeQuery | None = None
    ) -> list[ProductSalesRow]:
        query = build_query(PharmacyDateRangeQuery, filters)
        data = self._get_data("/reports/product-sales", query.to_params())
        return parse_list(ProductSalesRow, data, path="product sales report")
