from .base import BaseClient
from .invoice_gaps_client import InvoiceGapsClient
from .pharmacies_client import PharmaciesClient
from .redemptions_client import RedemptionsClient
from .reports_client import ReportsClient
from .transactions_client import TransactionsClient

__all__ = [
    "BaseClient",
    "InvoiceGapsClient",
    "PharmaciesClient",
    "RedemptionsClient",
    "ReportsClient",
    "TransactionsClient",
]
