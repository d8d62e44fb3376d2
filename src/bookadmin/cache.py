"""In-memory resource cache with request deduplication and invalidation.

One ResourceCache is created per process by the lifespan and passed to every
consumer. It is the only code that mutates CacheEntry state. All methods run
on the event loop thread; the synchronous ones that may start a fetch
(``invalidate``) must be called while the loop is running.

Ordering: every fetch and every direct write takes a number from a single
monotonic sequence. Stored data only ever moves to a higher sequence, so a
slow fetch that was issued earlier cannot overwrite newer data. A fetch that
started before the latest invalidation of its key is never joined; the next
fetch for that key waits for it to finish and then goes to the network, so a
key never has two network requests running at once.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from collections.abc import Awaitable, Callable, Iterable
from contextlib import suppress
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from bookadmin.decoders import unwrap
from bookadmin.errors import BookAdminError, DecodeError
from bookadmin.models.cache import CacheEntry, EntryStatus, MutationRequest, ResourceKey
from bookadmin.retry import RetryPolicy, Sleep, run_with_retry

if TYPE_CHECKING:
    from bookadmin.config import Settings
    from bookadmin.protocols import FetcherProtocol

log = structlog.get_logger()

T = TypeVar("T")

Loader = Callable[[], Awaitable[Any]]
Listener = Callable[[CacheEntry[Any]], None]


@dataclass
class _Source:
    """Most recent loader registered for a key; reused by background refreshes."""

    loader: Loader
    retry: RetryPolicy


@dataclass(frozen=True)
class _Outcome:
    entry: CacheEntry[Any]
    error: Exception | None = None


@dataclass
class _Flight:
    seq: int
    task: asyncio.Task[_Outcome]


class Subscription:
    """Handle returned by ``ResourceCache.subscribe``."""

    __slots__ = ("_active", "_cache", "_key", "_listener")

    def __init__(self, cache: ResourceCache, key: ResourceKey, listener: Listener) -> None:
        self._cache = cache
        self._key = key
        self._listener = listener
        self._active = True

    @property
    def key(self) -> ResourceKey:
        return self._key

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._cache._unsubscribe(self._key, self._listener)


class ResourceCache:
    """Caches resource collections keyed by ResourceKey.

    - ``request`` serves fresh entries from memory, returns stale ones while
      refreshing in the background, and otherwise waits for a fetch. At most
      one fetch per key is in flight; concurrent callers share it.
    - ``mutate`` runs a MutationRequest and applies its cache effects only
      after it succeeds.
    - ``subscribe`` delivers every new snapshot of a key to a listener.
    """

    def __init__(
        self,
        fetcher: FetcherProtocol,
        *,
        retry: RetryPolicy | None = None,
        default_stale_after: float = 0.0,
        stale_overrides: dict[str, float] | None = None,
        gc_after: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._retry = retry or RetryPolicy()
        self._default_stale_after = default_stale_after
        self._stale_overrides = dict(stale_overrides or {})
        self._gc_after = gc_after
        self._clock = clock
        self._sleep = sleep

        self._seq = itertools.count()
        self._entries: dict[ResourceKey, CacheEntry[Any]] = {}
        self._sources: dict[ResourceKey, _Source] = {}
        self._in_flight: dict[ResourceKey, _Flight] = {}
        # Flights dropped by remove/clear that may still be on the network
        self._detached: dict[ResourceKey, _Flight] = {}
        self._invalidations: dict[ResourceKey, int] = {}
        self._listeners: dict[ResourceKey, list[Listener]] = {}
        self._gc_timers: dict[ResourceKey, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[_Outcome]] = set()

    @classmethod
    def from_settings(cls, fetcher: FetcherProtocol, settings: Settings) -> ResourceCache:
        return cls(
            fetcher,
            retry=RetryPolicy.from_settings(settings.retry),
            default_stale_after=settings.cache.default_stale_seconds,
            stale_overrides=settings.cache.stale_overrides,
            gc_after=settings.cache.gc_seconds,
        )

    @property
    def fetcher(self) -> FetcherProtocol:
        return self._fetcher

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: ResourceKey) -> CacheEntry[Any] | None:
        """Current snapshot for ``key``. Never touches the network."""
        return self._entries.get(tuple(key))

    def in_flight(self, key: ResourceKey) -> bool:
        return tuple(key) in self._in_flight

    def stale_after_for(self, key: ResourceKey) -> float:
        """Freshness window for ``key``: the longest matching override, else the default."""
        for size in range(len(key), 0, -1):
            override = self._stale_overrides.get("/".join(key[:size]))
            if override is not None:
                return override
        return self._default_stale_after

    async def request(
        self,
        key: ResourceKey,
        loader: Loader,
        *,
        stale_after: float | None = None,
        retry: RetryPolicy | None = None,
    ) -> CacheEntry[Any]:
        """Return the entry for ``key``, fetching through ``loader`` when needed.

        Raises the loader's (classified) error when the caller had to wait for
        a fetch and that fetch failed. The entry then keeps its previous data
        with ``status=ERROR``.
        """
        key = tuple(key)
        window = stale_after if stale_after is not None else self.stale_after_for(key)
        self._sources[key] = _Source(loader=loader, retry=retry or self._retry)

        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key, stale_after=window)
            self._entries[key] = entry
        elif entry.stale_after != window:
            entry = replace(entry, stale_after=window)
            self._entries[key] = entry

        if entry.has_data and not entry.invalidated:
            if not entry.is_stale(self._clock()):
                log.debug("cache_hit", key=key, stale=False)
                return entry
            # Stale data is served as-is while a refresh runs behind it
            log.debug("cache_hit", key=key, stale=True)
            self._start_fetch(key)
            return self._entries[key]

        log.debug("cache_miss", key=key, invalidated=entry.invalidated)
        flight = self._start_fetch(key)
        outcome = await asyncio.shield(flight.task)
        if outcome.error is not None:
            raise outcome.error
        return outcome.entry

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_data(
        self, key: ResourceKey, data: Any, *, stale_after: float | None = None
    ) -> CacheEntry[Any]:
        """Store ``data`` directly, superseding any fetch already in flight."""
        key = tuple(key)
        seq = next(self._seq)
        entry = self._entries.get(key) or CacheEntry(key, stale_after=self.stale_after_for(key))
        self._invalidations.pop(key, None)
        entry = replace(
            entry,
            status=EntryStatus.LOADING if key in self._in_flight else EntryStatus.SUCCESS,
            data=data,
            error=None,
            last_updated=self._clock(),
            stale_after=stale_after if stale_after is not None else entry.stale_after,
            invalidated=False,
            data_seq=seq,
        )
        self._set(key, entry)
        return entry

    def invalidate(
        self, keys: Iterable[ResourceKey], *, exact: bool = False
    ) -> list[ResourceKey]:
        """Mark matching entries stale so their next ``request`` re-fetches.

        A key matches itself and, unless ``exact``, every key it is a prefix
        of. Entries with subscribers are refreshed right away. Already
        invalidated entries are left alone. Returns the keys newly marked.
        """
        marked: list[ResourceKey] = []
        for key in self._matching(keys, exact):
            entry = self._entries[key]
            if entry.invalidated:
                continue
            self._invalidations[key] = next(self._seq)
            self._set(key, replace(entry, invalidated=True))
            marked.append(key)
            if self._listeners.get(key) and key in self._sources:
                self._start_fetch(key)
        if marked:
            log.info("cache_invalidated", keys=marked)
        return marked

    def remove(self, keys: Iterable[ResourceKey], *, exact: bool = False) -> list[ResourceKey]:
        """Evict matching entries.

        A fetch in flight for an evicted key keeps running but its result is
        dropped. Subscribers stay registered and receive an empty snapshot.
        """
        removed = self._matching(keys, exact)
        for key in removed:
            del self._entries[key]
            self._detach(key)
            self._invalidations.pop(key, None)
            self._cancel_gc(key)
            self._notify(key, CacheEntry(key, stale_after=self.stale_after_for(key)))
        if removed:
            log.info("cache_removed", keys=removed)
        return removed

    async def mutate(self, mutation: MutationRequest[T]) -> T:
        """Execute ``mutation`` and apply its cache effects on success.

        A failed call leaves the cache untouched. Mutations are never retried.
        """
        log.info("mutation_started", method=mutation.method, path=mutation.path)
        payload = await self._fetcher.request(
            mutation.method, mutation.path, json=mutation.body, params=mutation.params
        )
        try:
            result = unwrap(mutation.decode(payload), f"{mutation.method} {mutation.path}")
        except DecodeError:
            # Server-side state changed even though the body is unreadable
            self.invalidate(mutation.invalidates)
            raise

        if mutation.write_key is not None:
            write_key = mutation.write_key(result)
            if write_key is not None:
                self.set_data(write_key, result)
        if mutation.removes:
            self.remove(mutation.removes, exact=True)
        if mutation.invalidates:
            self.invalidate(mutation.invalidates)

        log.info("mutation_complete", method=mutation.method, path=mutation.path)
        return result

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, key: ResourceKey, listener: Listener) -> Subscription:
        """Call ``listener`` with each new snapshot of ``key`` until unsubscribed."""
        key = tuple(key)
        self._listeners.setdefault(key, []).append(listener)
        self._cancel_gc(key)
        return Subscription(self, key, listener)

    def subscriber_count(self, key: ResourceKey) -> int:
        return len(self._listeners.get(tuple(key), ()))

    def _unsubscribe(self, key: ResourceKey, listener: Listener) -> None:
        listeners = self._listeners.get(key)
        if listeners is None:
            return
        with suppress(ValueError):
            listeners.remove(listener)
        if listeners:
            return
        del self._listeners[key]
        self._schedule_gc(key)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Drop every entry. Fetches in flight are detached, not cancelled."""
        for timer in self._gc_timers.values():
            timer.cancel()
        self._gc_timers.clear()
        self._entries.clear()
        self._sources.clear()
        for key in list(self._in_flight):
            self._detach(key)
        self._invalidations.clear()
        log.info("cache_cleared")

    async def aclose(self) -> None:
        """Clear the cache and cancel outstanding fetch tasks. Called at shutdown."""
        self.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._detached.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_fetch(self, key: ResourceKey) -> _Flight:
        """Join the fetch in flight for ``key`` or start a new one.

        A flight issued before the key's latest invalidation is not joined:
        the new flight waits for it to finish before calling the loader.
        """
        current = self._in_flight.get(key)
        if current is not None and current.seq > self._invalidations.get(key, -1):
            log.debug("fetch_joined", key=key, seq=current.seq)
            return current

        previous = current or self._detached.get(key)
        source = self._sources[key]
        seq = next(self._seq)
        task = asyncio.create_task(
            self._run(key, seq, source, previous.task if previous is not None else None)
        )
        flight = _Flight(seq=seq, task=task)
        # Registered before listeners hear about it so re-entrant requests join
        self._in_flight[key] = flight
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        entry = self._entries.get(key) or CacheEntry(key, stale_after=self.stale_after_for(key))
        self._set(key, replace(entry, status=EntryStatus.LOADING))
        log.debug(
            "fetch_started",
            key=key,
            seq=seq,
            after=previous.seq if previous is not None else None,
        )
        return flight

    def _detach(self, key: ResourceKey) -> None:
        flight = self._in_flight.pop(key, None)
        if flight is None:
            return
        self._detached[key] = flight

        def forget(_: asyncio.Task[_Outcome]) -> None:
            if self._detached.get(key) is flight:
                del self._detached[key]

        flight.task.add_done_callback(forget)

    async def _run(
        self,
        key: ResourceKey,
        seq: int,
        source: _Source,
        after: asyncio.Task[_Outcome] | None = None,
    ) -> _Outcome:
        if after is not None and not after.done():
            # One network request per key: the earlier one finishes first
            await asyncio.wait([after])
        try:
            data = await run_with_retry(source.loader, source.retry, sleep=self._sleep, key=key)
        except Exception as exc:
            return self._settle(key, seq, error=exc)
        return self._settle(key, seq, data=data)

    def _settle(
        self,
        key: ResourceKey,
        seq: int,
        *,
        data: Any = None,
        error: Exception | None = None,
    ) -> _Outcome:
        flight = self._in_flight.get(key)
        entry = self._entries.get(key)
        if flight is None or flight.seq != seq or entry is None:
            # Evicted, or restarted after an invalidation; a newer flight owns the key
            reason = "evicted" if flight is None or entry is None else "restarted"
            log.info("fetch_result_discarded", key=key, seq=seq, reason=reason)
            if error is not None:
                return _Outcome(CacheEntry(key, status=EntryStatus.ERROR, error=error), error)
            detached = CacheEntry(
                key,
                status=EntryStatus.SUCCESS,
                data=data,
                last_updated=self._clock(),
                data_seq=seq,
            )
            return _Outcome(detached)

        del self._in_flight[key]
        if error is not None:
            self._log_failure(key, error)
            entry = replace(entry, status=EntryStatus.ERROR, error=error)
        elif seq < entry.data_seq:
            log.info(
                "fetch_result_discarded",
                key=key,
                seq=seq,
                data_seq=entry.data_seq,
                reason="superseded",
            )
            entry = replace(entry, status=EntryStatus.SUCCESS, error=None)
        else:
            invalidated = self._invalidations.get(key, -1) > seq
            if not invalidated:
                self._invalidations.pop(key, None)
            entry = replace(
                entry,
                status=EntryStatus.SUCCESS,
                data=data,
                error=None,
                last_updated=self._clock(),
                invalidated=invalidated,
                data_seq=seq,
            )
        self._set(key, entry)
        return _Outcome(entry, error)

    def _log_failure(self, key: ResourceKey, error: Exception) -> None:
        if isinstance(error, BookAdminError):
            log.warning(
                "cache_fetch_failed",
                key=key,
                code=error.code,
                message=error.message,
                recoverable=error.recoverable,
            )
        else:
            log.error("cache_fetch_unexpected_error", key=key, exc_info=error)

    def _matching(self, keys: Iterable[ResourceKey], exact: bool) -> list[ResourceKey]:
        prefixes = [tuple(k) for k in keys]
        return [
            key
            for key in self._entries
            if any(key == p or (not exact and key[: len(p)] == p) for p in prefixes)
        ]

    def _set(self, key: ResourceKey, entry: CacheEntry[Any]) -> None:
        self._entries[key] = entry
        self._notify(key, entry)

    def _notify(self, key: ResourceKey, entry: CacheEntry[Any]) -> None:
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(entry)
            except Exception:
                log.error("cache_listener_error", key=key, exc_info=True)

    def _schedule_gc(self, key: ResourceKey) -> None:
        self._cancel_gc(key)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to run a timer on (synchronous teardown): collect now
            if key not in self._in_flight:
                self._collect(key)
            return
        self._gc_timers[key] = loop.call_later(self._gc_after, self._collect, key)

    def _cancel_gc(self, key: ResourceKey) -> None:
        timer = self._gc_timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    def _collect(self, key: ResourceKey) -> None:
        self._gc_timers.pop(key, None)
        if self._listeners.get(key):
            return
        if key in self._in_flight:
            # The result is stored first; eviction waits for the next idle period
            self._schedule_gc(key)
            return
        if self._entries.pop(key, None) is not None:
            self._sources.pop(key, None)
            self._invalidations.pop(key, None)
            log.debug("cache_entry_collected", key=key)
