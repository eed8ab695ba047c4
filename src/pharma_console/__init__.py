from .config import ClientConfig, ConfigError, load_config
from .exceptions import (
    ApiError,
    AuthError,
    ForbiddenError,
    MalformedPayloadError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    StateConflictError,
    ValidationError,
)
from .fetchers import ReportFetcher, ReportKind, ReportSlice, SliceStatus
from .filters import FilterChange, FilterCriteria, FilterReason, FilterStateManager
from .http_client import HttpClient
from .invoice_gaps import InvoiceGapController
from .models import EntryType, PaginationEnvelope, PharmacyRef
from .models_invoice_gaps import GapState, InvoiceGap, InvoiceGapStatistics
from .orchestrator import ReportOrchestrator, ReportPager
from .pharmacy_directory import PharmacyDirectory
from .refinement import ClientRefiner, RefinedPage, page_numbers, refine
from .session import ConsoleSession
from .tables import TableViewModel, build_table, print_table
from .ui_errors import ErrorInfo, ErrorKind

__all__ = [
    "ApiError",
    "AuthError",
    "ClientConfig",
    "ClientRefiner",
    "ConfigError",
    "ConsoleSession",
    "EntryType",
    "ErrorInfo",
    "ErrorKind",
    "FilterChange",
    "FilterCriteria",
    "FilterReason",
    "FilterStateManager",
    "ForbiddenError",
    "GapState",
    "HttpClient",
    "InvoiceGap",
    "InvoiceGapController",
    "InvoiceGapStatistics",
    "MalformedPayloadError",
    "NetworkError",
    "NotFoundError",
    "PaginationEnvelope",
    "PharmacyDirectory",
    "PharmacyRef",
    "RateLimitError",
    "RefinedPage",
    "ReportFetcher",
    "ReportKind",
    "ReportOrchestrator",
    "ReportPager",
    "ReportSlice",
    "ServerError",
    "SliceStatus",
    "StateConflictError",
    "TableViewModel",
    "ValidationError",
    "build_table",
    "load_config",
    "page_numbers",
    "print_table",
    "refine",
]
