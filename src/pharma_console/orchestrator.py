from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from .fetchers import PAGINATED_KINDS, SERVER_SEARCH_KINDS, ReportFetcher, ReportKind, ReportSlice, SliceStatus
from .filters import FilterChange, FilterCriteria, FilterReason, FilterStateManager
from .logs import log_json

LOG = logging.getLogger(__name__)

SliceListener = Callable[[ReportSlice[Any]], None]


@dataclass
class ReportPager:
    kind: ReportKind
    per_page: int
    page: int = 1
    last_page: int | None = None
    generation: int = 0

    def clamp(self, page: int) -> int:
        target = max(1, int(page))
        if self.last_page is not None:
            target = min(target, self.last_page)
        return target

    def reset(self, per_page: int) -> None:
        self.page = 1
        self.per_page = per_page
        self.last_page = None
        self.generation += 1


class ReportOrchestrator:
    """Runs a view's fetchers against one shared filter snapshot.

    Every paginated kind keeps its own pager, so paging one report never reloads another.
    The default pager kind mirrors the filter snapshot's page; it only moves through
    `FilterStateManager.set_page`.
    """

    def __init__(
        self,
        filters: FilterStateManager,
        fetchers: Iterable[ReportFetcher],
        *,
        default_pager_kind: ReportKind | None = None,
        max_workers: int = 8,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.filters = filters
        self._fetchers: dict[ReportKind, ReportFetcher] = {fetcher.kind: fetcher for fetcher in fetchers}
        per_page = filters.snapshot.per_page
        self._pagers = {
            kind: ReportPager(kind=kind, per_page=per_page) for kind in self._fetchers if kind in PAGINATED_KINDS
        }
        if default_pager_kind is None and len(self._pagers) == 1:
            default_pager_kind = next(iter(self._pagers))
        if default_pager_kind is not None and default_pager_kind not in self._pagers:
            raise ValueError(f"{default_pager_kind.value} is not a paginated report of this view")
        self.default_pager_kind = default_pager_kind
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report-fetch")
        self._listeners: list[SliceListener] = []
        self._futures: dict[ReportKind, Future] = {}
        self._listeners_lock = threading.Lock()
        self._pager_lock = threading.Lock()
        self._unsubscribe = filters.subscribe(self._on_filters)

    def __enter__(self) -> "ReportOrchestrator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def kinds(self) -> tuple[ReportKind, ...]:
        return tuple(self._fetchers)

    def fetcher(self, kind: ReportKind) -> ReportFetcher:
        try:
            return self._fetchers[kind]
        except KeyError:
            raise ValueError(f"{kind.value} is not part of this view") from None

    def slice(self, kind: ReportKind) -> ReportSlice[Any]:
        return self.fetcher(kind).slice

    def slices(self) -> dict[ReportKind, ReportSlice[Any]]:
        return {kind: fetcher.slice for kind, fetcher in self._fetchers.items()}

    def pager(self, kind: ReportKind) -> ReportPager:
        try:
            return self._pagers[kind]
        except KeyError:
            raise ValueError(f"{kind.value} is not a paginated report of this view") from None

    @property
    def any_loading(self) -> bool:
        return any(fetcher.slice.is_loading for fetcher in self._fetchers.values())

    def loading_flags(self) -> dict[ReportKind, bool]:
        return {kind: fetcher.slice.is_loading for kind, fetcher in self._fetchers.items()}

    def add_listener(self, listener: SliceListener) -> Callable[[], None]:
        with self._listeners_lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    def criteria_for(self, kind: ReportKind) -> FilterCriteria:
        with self._pager_lock:
            return self._criteria(kind)[0]

    def _criteria(self, kind: ReportKind) -> tuple[FilterCriteria, int]:
        snapshot = self.filters.snapshot
        pager = self._pagers.get(kind)
        if pager is None:
            return snapshot, 0
        return snapshot.with_page(pager.page, pager.per_page), pager.generation

    def load(self) -> dict[ReportKind, Future]:
        """Initial load of every report, including ones that ignore filter changes."""
        return {kind: self._trigger(kind) for kind in self._fetchers}

    def refresh(self, kinds: Iterable[ReportKind] | None = None) -> dict[ReportKind, Future]:
        targets = list(kinds) if kinds is not None else list(self._fetchers)
        return {kind: self._trigger(kind) for kind in targets}

    def set_page(self, kind: ReportKind, page: int) -> Future:
        pager = self.pager(kind)
        if kind is self.default_pager_kind:
            before = self._futures.get(kind)
            self.filters.set_page(page)
            current = self._futures.get(kind)
            if current is not None and current is not before:
                return current
            # Same page as the snapshot: an explicit reload.
            return self._trigger(kind)
        with self._pager_lock:
            pager.page = pager.clamp(page)
        return self._trigger(kind)

    def amend(self, kind: ReportKind, transform: Callable[[Any], Any]) -> ReportSlice[Any]:
        current = self.fetcher(kind).amend(transform)
        self._notify(current)
        return current

    def wait(
        self,
        futures: dict[ReportKind, Future] | Iterable[Future] | None = None,
        timeout: float | None = None,
    ) -> dict[ReportKind, ReportSlice[Any]]:
        """Block until the given fetches, or the latest fetch of every kind, have settled."""
        if futures is None:
            futures = dict(self._futures)
        pending = list(futures.values()) if isinstance(futures, dict) else list(futures)
        done, _ = wait(pending, timeout=timeout)
        for future in done:
            future.result()
        return self.slices()

    def close(self) -> None:
        self._unsubscribe()
        self._executor.shutdown(wait=True)

    def _on_filters(self, snapshot: FilterCriteria, change: FilterChange) -> None:
        default = self.default_pager_kind
        if change.reason is FilterReason.PAGE:
            if default is None:
                return
            with self._pager_lock:
                pager = self._pagers[default]
                pager.page = pager.clamp(snapshot.page)
            self._trigger(default)
            return

        if change.local_only:
            self._on_local_search(snapshot)
            return
        with self._pager_lock:
            for pager in self._pagers.values():
                pager.reset(snapshot.per_page)
        for kind, fetcher in self._fetchers.items():
            if fetcher.follows_filters:
                self._trigger(kind)

    def _on_local_search(self, snapshot: FilterCriteria) -> None:
        """Search-only apply: refetch the kinds that search server-side; the rest refine locally."""
        default = self.default_pager_kind
        # Reports that have never loaded still need their first fetch.
        targets = [
            kind
            for kind, fetcher in self._fetchers.items()
            if fetcher.follows_filters
            and (kind in SERVER_SEARCH_KINDS or fetcher.slice.status is SliceStatus.IDLE)
        ]
        with self._pager_lock:
            for kind in targets:
                if kind in self._pagers:
                    self._pagers[kind].reset(snapshot.per_page)
            if default is not None and default not in targets:
                pager = self._pagers[default]
                # The snapshot page was reset to 1; keep the default pager on the same page.
                if pager.page != snapshot.page:
                    pager.page = snapshot.page
                    targets.append(default)
                self.filters.set_last_page(pager.last_page)
        for kind in targets:
            self._trigger(kind)

    def _trigger(self, kind: ReportKind) -> Future:
        fetcher = self.fetcher(kind)
        with self._pager_lock:
            criteria, generation = self._criteria(kind)
            seq = fetcher.begin(criteria)
        self._notify(fetcher.slice)
        future = self._executor.submit(self._run, fetcher, seq, criteria, generation)
        self._futures[kind] = future
        return future

    def _run(
        self, fetcher: ReportFetcher, seq: int, criteria: FilterCriteria, generation: int
    ) -> ReportSlice[Any]:
        current = fetcher.complete(seq, criteria)
        if current.seq != seq:
            return current
        pager = self._pagers.get(fetcher.kind)
        if pager is not None and current.status is SliceStatus.LOADED:
            with self._pager_lock:
                # A reset since this request was issued means its page count describes old filters.
                if pager.generation == generation and fetcher.latest_seq == seq:
                    pager.last_page = fetcher.last_page()
                    if fetcher.kind is self.default_pager_kind:
                        self.filters.set_last_page(pager.last_page)
        log_json(
            LOG,
            {"event": "report_slice_settled", "kind": fetcher.kind.value, "status": current.status.value},
            level=logging.DEBUG,
        )
        self._notify(current)
        return current

    def _notify(self, current: ReportSlice[Any]) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(current)
