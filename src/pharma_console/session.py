from __future__ import annotations

import logging
from dataclasses import dataclass

from .clients.invoice_gaps_client import InvoiceGapsClient
from .clients.pharmacies_client import PharmaciesClient
from .clients.redemptions_client import RedemptionsClient
from .clients.reports_client import ReportsClient
from .clients.transactions_client import TransactionsClient
from .config import ClientConfig
from .exceptions import AuthError
from .http_client import HttpClient
from .logs import log_json
from .pharmacy_directory import PharmacyDirectory
from .telemetry import TelemetryLogger

LOG = logging.getLogger(__name__)


@dataclass
class ConsoleSession:
    config: ClientConfig
    http: HttpClient | None = None
    telemetry: TelemetryLogger | None = None
    directory: PharmacyDirectory | None = None
    token_rejected: bool = False

    def __post_init__(self) -> None:
        self.http = self.http or HttpClient(config=self.config, on_unauthorized=self._on_unauthorized)
        self.telemetry = self.telemetry or TelemetryLogger(
            app_name="pharma-console", enabled=self.config.telemetry_enabled
        )
        self.directory = self.directory or PharmacyDirectory(self.pharmacies_client().list_pharmacies)

    @property
    def token(self) -> str | None:
        return self.config.access_token

    def pharmacies_client(self) -> PharmaciesClient:
        return PharmaciesClient(http=self.http, access_token=self.token)

    def reports_client(self) -> ReportsClient:
        return ReportsClient(http=self.http, access_token=self.token)

    def redemptions_client(self) -> RedemptionsClient:
        return RedemptionsClient(http=self.http, access_token=self.token)

    def invoice_gaps_client(self) -> InvoiceGapsClient:
        return InvoiceGapsClient(http=self.http, access_token=self.token)

    def transactions_client(self) -> TransactionsClient:
        return TransactionsClient(http=self.http, access_token=self.token)

    def _on_unauthorized(self, error: AuthError) -> None:
        self.token_rejected = True
        log_json(
            LOG,
            {"event": "access_token_rejected", "code": error.code, "trace_id": error.trace_id},
            level=logging.WARNING,
        )
