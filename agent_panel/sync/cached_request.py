"""
Cached request units bound to a single agent endpoint.

A `CachedRequest` remembers the last successful response of its endpoint,
tracks a loading flag and the last error, and reports failures through the
shared `NotificationQueue`. A `ResourceCache` hands out one unit per resource
identity so callers never duplicate the caching logic.

Lifecycle of a unit::

    uninitialized --request--> loading --ok--> ready
                                      \\--fail--> error --request--> loading ...

`ensure()` is the single entry transition used by views: it fetches when
nothing was ever cached and otherwise replays the cache (`hydrate`).
Concurrent `request()` calls are not coalesced; whichever response resolves
last wins the cached value.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Generic, Hashable, Mapping, Optional, Tuple, TypeVar

from agent_panel.api.agent_client import AgentClient, AgentClientError, describe_error
from agent_panel.sync.notifications import NotificationQueue
from agent_panel.utils.logger import StructuredLogger

T = TypeVar("T")

UNINITIALIZED = "uninitialized"
LOADING = "loading"
READY = "ready"
ERROR = "error"

DEFAULT_ERROR_TITLE = "Error"


@dataclass(frozen=True)
class CachedResource(Generic[T]):
    """View of one endpoint binding as seen by the renderer."""

    data: Optional[T] = None
    loading: bool = False
    error: Optional[str] = None
    last_fetched_at: Optional[float] = None


@dataclass(frozen=True)
class _CacheEntry(Generic[T]):
    data: T
    fetched_at: float


class CachedRequest(Generic[T]):
    """
    Request/cache/error-reporting wrapper for one endpoint.

    Parameters:
        client: Agent client performing the HTTP calls.
        path: Endpoint path relative to the API prefix (e.g. "plan").
        notifications: Queue receiving one error message per failed request.
        method: Default HTTP method.
        params: Default query parameters.
        transform: Optional conversion applied to the decoded JSON before caching.
        fetch: Optional zero-argument client call used for plain refreshes instead
            of a generic request (e.g. `client.get_plan`).
        error_title: Title used for failure notifications.
        clock: Source of `last_fetched_at` timestamps.
    """

    def __init__(
        self,
        client: AgentClient,
        path: str,
        *,
        notifications: NotificationQueue,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        transform: Optional[Callable[[Any], T]] = None,
        fetch: Optional[Callable[[], Any]] = None,
        error_title: str = DEFAULT_ERROR_TITLE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self.path = path
        self.method = method.upper()
        self._params = dict(params) if params else None
        self._transform = transform
        self._fetch = fetch
        self._notifications = notifications
        self._error_title = error_title
        self._clock = clock
        self._cache: Optional[_CacheEntry[T]] = None
        self._view: CachedResource[T] = CachedResource()
        self._logger = StructuredLogger(__name__)

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def view(self) -> CachedResource[T]:
        return self._view

    @property
    def data(self) -> Optional[T]:
        return self._view.data

    @property
    def loading(self) -> bool:
        return self._view.loading

    @property
    def error(self) -> Optional[str]:
        return self._view.error

    @property
    def has_cache(self) -> bool:
        return self._cache is not None

    @property
    def state(self) -> str:
        if self._view.loading:
            return LOADING
        if self._view.error is not None:
            return ERROR
        if self._cache is not None:
            return READY
        return UNINITIALIZED

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def request(
        self,
        *,
        method: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> T:
        """
        Perform the call and cache its result.

        On failure the cached data is left untouched, `error` is set, one
        error notification is pushed and the `AgentClientError` is re-raised.
        """
        verb = (method or self.method).upper()
        self._view = replace(self._view, loading=True, error=None)
        self._logger.debug(f"{verb} {self.path} started")
        try:
            if self._fetch is not None and method is None and params is None and json is None:
                payload = self._fetch()
            else:
                payload = self._client.request_json(
                    verb,
                    self.path,
                    params=params if params is not None else self._params,
                    json=json,
                )
            data = self._apply_transform(payload)
        except AgentClientError as exc:
            message = describe_error(exc)
            self._view = replace(self._view, loading=False, error=message)
            self._notifications.error(self._error_title, message)
            self._logger.warning(f"{verb} {self.path} failed: {message}")
            raise

        fetched_at = self._clock()
        self._cache = _CacheEntry(data=data, fetched_at=fetched_at)
        self._view = CachedResource(data=data, loading=False, error=None, last_fetched_at=fetched_at)
        self._logger.debug(f"{verb} {self.path} finished")
        return data

    def hydrate(self) -> None:
        """Replay the cached data into the view; no I/O, keeps any existing error."""
        if self._cache is None:
            return
        self._view = replace(self._view, data=self._cache.data, last_fetched_at=self._cache.fetched_at)

    def ensure(self) -> Optional[T]:
        """Fetch when nothing has been cached yet, otherwise hydrate from the cache."""
        if self._cache is None:
            return self.request()
        self.hydrate()
        return self._view.data

    def invalidate(self) -> None:
        """Forget the cached payload so the next `ensure()` fetches again."""
        self._cache = None

    def _apply_transform(self, payload: Any) -> T:
        if self._transform is None:
            return payload
        try:
            return self._transform(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise AgentClientError(f"Malformed response from {self.path}: {exc}", payload=payload) from exc


ResourceKey = Tuple[str, str, Tuple[Tuple[str, Hashable], ...]]


def resource_key(path: str, method: str = "GET", params: Optional[Mapping[str, Any]] = None) -> ResourceKey:
    items = tuple(sorted((str(key), str(value)) for key, value in (params or {}).items()))
    return method.upper(), path.strip("/"), items


class ResourceCache:
    """
    Registry of `CachedRequest` units keyed by resource identity.

    Exposes `read` (ensure), `refresh` (unconditional request) and
    `invalidate` over the units it owns; units never share state.
    """

    def __init__(self, client: AgentClient, notifications: NotificationQueue) -> None:
        self._client = client
        self._notifications = notifications
        self._units: Dict[ResourceKey, CachedRequest[Any]] = {}

    def unit(
        self,
        path: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        transform: Optional[Callable[[Any], Any]] = None,
        fetch: Optional[Callable[[], Any]] = None,
        error_title: str = DEFAULT_ERROR_TITLE,
    ) -> CachedRequest[Any]:
        """Return the unit bound to this identity, creating it on first use."""
        key = resource_key(path, method, params)
        existing = self._units.get(key)
        if existing is not None:
            return existing
        created: CachedRequest[Any] = CachedRequest(
            self._client,
            path,
            notifications=self._notifications,
            method=method,
            params=params,
            transform=transform,
            fetch=fetch,
            error_title=error_title,
        )
        self._units[key] = created
        return created

    def read(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.unit(path, params=params).ensure()

    def refresh(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.unit(path, params=params).request()

    def invalidate(self, path: Optional[str] = None) -> None:
        """Invalidate every unit of `path` (all units when omitted)."""
        target = path.strip("/") if path is not None else None
        for (_, unit_path, _), unit in self._units.items():
            if target is None or unit_path == target:
                unit.invalidate()

    def __contains__(self, key: object) -> bool:
        return key in self._units


__all__ = [
    "CachedRequest",
    "CachedResource",
    "ERROR",
    "LOADING",
    "READY",
    "ResourceCache",
    "UNINITIALIZED",
    "resource_key",
]
