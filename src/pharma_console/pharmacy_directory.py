from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from .exceptions import ApiError
from .logs import log_json
from .models import PharmacyRef
from .ui_errors import ErrorInfo

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class PharmacyOption:
    value: int
    label: str


class PharmacyDirectory:
    """Session-wide pharmacy reference list used to populate the pharmacy filter.

    Loaded once; `refresh` swaps the whole tuple so readers never see a partial list.
    """

    def __init__(self, loader: Callable[[], list[PharmacyRef]]) -> None:
        self._loader = loader
        self._pharmacies: tuple[PharmacyRef, ...] = ()
        self._loaded = False
        self._error: ErrorInfo | None = None
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self._loaded and self._error is None

    @property
    def error(self) -> ErrorInfo | None:
        return self._error

    @property
    def pharmacies(self) -> tuple[PharmacyRef, ...]:
        return self._pharmacies

    def ensure_loaded(self) -> tuple[PharmacyRef, ...]:
        if not self._loaded:
            self.refresh()
        return self._pharmacies

    def refresh(self) -> tuple[PharmacyRef, ...]:
        try:
            fetched = tuple(self._loader())
        except ApiError as exc:
            log_json(
                LOG,
                {"event": "pharmacy_directory_unavailable", "code": exc.code, "trace_id": exc.trace_id},
                level=logging.WARNING,
            )
            with self._lock:
                self._loaded = True
                self._error = ErrorInfo.from_exception(exc)
            return self._pharmacies
        with self._lock:
            self._pharmacies = fetched
            self._loaded = True
            self._error = None
        log_json(LOG, {"event": "pharmacy_directory_loaded", "count": len(fetched)})
        return fetched

    def get(self, pharmacy_id: int) -> PharmacyRef | None:
        for pharmacy in self._pharmacies:
            if pharmacy.id == pharmacy_id:
                return pharmacy
        return None

    def options(self, include_inactive: bool = False) -> list[PharmacyOption]:
        return [
            PharmacyOption(value=pharmacy.id, label=pharmacy.display_name)
            for pharmacy in self._pharmacies
            if include_inactive or pharmacy.is_active
        ]
