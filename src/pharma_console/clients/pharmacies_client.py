from __future__ import annotations

from dataclasses import dataclass

from ..models import PharmacyRef
from .base import BaseClient, parse_list, parse_model


@dataclass
class PharmaciesClient(BaseClient):
    def list_pharmacies(self) -> list[PharmacyRef]:
        data = self._get_data("/pharmacies")
        # Some deployments wrap the directory in a pagination envelope.
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            data = data["data"]
        return parse_list(PharmacyRef, data, path="pharmacies")

    def get_pharmacy(self, pharmacy_id: int) -> PharmacyRef:
        data = self._get_data(f"/pharmacies/{pharmacy_id}")
        return parse_model(PharmacyRef, data, path="pharmacy")
