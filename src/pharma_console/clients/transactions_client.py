from __future__ import annotations

from dataclasses import dataclass

from ..filters import FilterCriteria
from ..models import PaginationEnvelope
from ..models_transactions import TransactionRecord
from ..queries import TransactionQuery
from .base import BaseClient, build_query, parse_model


@dataclass
class TransactionsClient(BaseClient):
    def list_transactions(
        self, filters: FilterCriteria | TransactionQuery | None = None
    ) -> PaginationEnvelope[TransactionRecord]:
        query = build_query(TransactionQuery, filters)
        data = self._get_data("/transactions", query.to_params())
        return parse_model(PaginationEnvelope[TransactionRecord], data, path="transactions")
