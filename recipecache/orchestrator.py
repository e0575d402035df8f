"""
Fallback orchestrator: the single entry point callers use for Spoonacular data.

For every request the sources are tried in order:

    1. fresh cache          -> (payload, from_cache=True)
    2. quota check          -> skip to 4 when the daily allowance is spent
    3. upstream adapter     -> record usage, upsert cache, (payload, from_cache=False)
    4. stale cache          -> (payload, from_cache=True)
    5. static dataset       -> (payload, from_cache=True), never fails

Only malformed parameters (``ValueError``/``TypeError``) and cancellation
(``RequestCancelled``) escape. Cache writes and quota increments that fail
are logged and dropped so they never spoil a good upstream answer.
"""

import functools
import logging
import threading
from dataclasses import dataclass, field

from django.conf import settings

from . import keys
from .adapters import default_adapters
from .exceptions import RequestCancelled, StoreUnavailable, UpstreamError
from .fallback import StaticFallbackDataset, get_fallback_dataset
from .payloads import RecipeDetail, SingleRecipe, payload_from_dict
from .quota import QuotaLedger
from .store import CacheStore, default_stores

logger = logging.getLogger(__name__)

SOURCE_FRESH = "fresh"
SOURCE_UPSTREAM = "upstream"
SOURCE_STALE = "stale"
SOURCE_STATIC = "static"

MAX_POPULAR_NUMBER = 100
# seconds between cancellation checks while waiting on another caller
FOLLOWER_POLL = 0.05
# search filters that must be non-negative integers
INT_FILTERS = ("number", "offset", "maxReadyTime")


# ---------------------------------------------------------------------
# Caller-facing results
# ---------------------------------------------------------------------

@dataclass
class Outcome:
    payload: object
    from_cache: bool
    source: str


@dataclass
class SearchResponse:
    recipes: list = field(default_factory=list)
    total_results: int = 0
    from_cache: bool = False
    source: str = SOURCE_UPSTREAM

    def to_dict(self) -> dict:
        return {
            "recipes": [r.to_dict() for r in self.recipes],
            "total_results": self.total_results,
            "from_cache": self.from_cache,
            "source": self.source,
        }


@dataclass
class RecipeResponse:
    recipe: RecipeDetail | None = None
    from_cache: bool = False
    source: str = SOURCE_UPSTREAM

    def to_dict(self) -> dict:
        return {
            "recipe": self.recipe.to_dict() if self.recipe else None,
            "from_cache": self.from_cache,
            "source": self.source,
        }


@dataclass
class RecipesResponse:
    recipes: list = field(default_factory=list)
    from_cache: bool = False
    source: str = SOURCE_UPSTREAM

    def to_dict(self) -> dict:
        return {
            "recipes": [r.to_dict() for r in self.recipes],
            "from_cache": self.from_cache,
            "source": self.source,
        }


# ---------------------------------------------------------------------
# Single-flight: one upstream walk per key at a time
# ---------------------------------------------------------------------

class _Flight:
    def __init__(self):
        self.done = threading.Event()
        self.outcome = None
        self.error = None


class SingleFlight:
    """
    Concurrent callers for the same key share the first caller's outcome.
    The registry lock only guards the dict; waiting happens on an Event.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._flights: dict[str, _Flight] = {}

    def run(self, key: str, fn, cancel=None):
        with self._lock:
            flight = self._flights.get(key)
            leader = flight is None
            if leader:
                flight = self._flights[key] = _Flight()

        if not leader:
            while not flight.done.wait(FOLLOWER_POLL):
                _check_cancel(cancel, key)
            _check_cancel(cancel, key)
            if isinstance(flight.error, RequestCancelled):
                # the leader's caller gave up, not us
                return self.run(key, fn, cancel)
            if flight.error is not None:
                raise flight.error
            return flight.outcome

        try:
            flight.outcome = fn()
            return flight.outcome
        except BaseException as exc:
            flight.error = exc
            raise
        finally:
            with self._lock:
                self._flights.pop(key, None)
            flight.done.set()


# ---------------------------------------------------------------------
# Parameter checks (programmer errors)
# ---------------------------------------------------------------------

def _clean_filters(filters) -> dict:
    if filters is None:
        return {}
    if not isinstance(filters, dict):
        raise TypeError("filters must be a dict")
    clean = {}
    for name, value in filters.items():
        if not isinstance(name, str):
            raise TypeError(f"filter names must be strings, got {name!r}")
        if name == "query":
            raise ValueError("pass the search text as `query`, not as a filter")
        if isinstance(value, (set, frozenset, tuple)):
            value = sorted(value)
        if name in INT_FILTERS and value is not None:
            value = _non_negative_int(name, value)
        clean[name] = value
    keys.encode_params(clean)  # raises TypeError on unsupported values
    return clean


def _non_negative_int(name: str, value) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _clean_tags(tags) -> list[str]:
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return sorted({t.strip().lower() for t in tags if isinstance(t, str) and t.strip()})


class FallbackOrchestrator:
    """
    Walks fresh cache -> quota-gated upstream -> stale cache -> static data.

    All collaborators are injected so tests can swap in fakes:
    ``stores`` maps a kind to a ``CacheStore``, ``adapters`` maps a kind to
    an ``EndpointAdapter``.
    """

    def __init__(
        self,
        stores: dict[str, CacheStore],
        ledger: QuotaLedger,
        adapters: dict,
        dataset: StaticFallbackDataset,
        single_flight: bool = True,
    ):
        self.stores = stores
        self.ledger = ledger
        self.adapters = adapters
        self.dataset = dataset
        self._flights = SingleFlight() if single_flight else None

    # ---- public contract -------------------------------------------------

    def search(self, query: str | None = "", filters: dict | None = None, cancel=None) -> SearchResponse:
        """Recipes matching ``query`` and filters (cuisine, diet, type, number...)."""
        if query is not None and not isinstance(query, str):
            raise TypeError("query must be a string")
        filters = _clean_filters(filters)
        query = query or ""
        key = keys.search_key(query, filters)
        outcome = self._resolve(
            keys.SEARCH,
            key,
            params={"query": query, **filters},
            static=lambda: self.dataset.search(query, filters),
            lookup_fields={"query": keys.normalize_query(query)[:255], "filters": filters},
            cancel=cancel,
        )
        return SearchResponse(
            recipes=outcome.payload.recipes,
            total_results=outcome.payload.total_results,
            from_cache=outcome.from_cache,
            source=outcome.source,
        )

    def get_by_id(self, recipe_id, cancel=None) -> RecipeResponse:
        """Full recipe, or ``recipe=None`` when no source knows the id."""
        rid = keys.parse_recipe_id(recipe_id)
        outcome = self._resolve(
            keys.RECIPE,
            keys.recipe_key(rid),
            params={"id": rid},
            static=lambda: self.dataset.get(rid),
            lookup_fields={"recipe_id": rid},
            cancel=cancel,
        )
        return RecipeResponse(
            recipe=outcome.payload.recipe,
            from_cache=outcome.from_cache,
            source=outcome.source,
        )

    def find_by_ingredients(self, ingredients, cancel=None) -> RecipesResponse:
        """Recipes that use the given pantry ingredients."""
        names = keys.normalize_ingredients(ingredients)
        if not names:
            raise ValueError("at least one ingredient is required")
        outcome = self._resolve(
            keys.INGREDIENTS,
            keys.ingredients_key(names),
            params={"ingredients": names},
            static=lambda: self.dataset.by_ingredients(names),
            lookup_fields={"ingredients": names},
            cancel=cancel,
        )
        return RecipesResponse(
            recipes=outcome.payload.recipes,
            from_cache=outcome.from_cache,
            source=outcome.source,
        )

    def popular(self, tags=None, number: int = keys.DEFAULT_POPULAR_NUMBER, cancel=None) -> RecipesResponse:
        """Popular/random recipes, optionally restricted to ``tags``."""
        tags = _clean_tags(tags)
        if isinstance(number, bool) or not isinstance(number, int):
            raise TypeError("number must be an integer")
        if not 1 <= number <= MAX_POPULAR_NUMBER:
            raise ValueError(f"number must be between 1 and {MAX_POPULAR_NUMBER}")
        outcome = self._resolve(
            keys.POPULAR,
            keys.popular_key(tags, number),
            params={"tags": tags, "number": number},
            static=lambda: self.dataset.popular(tags, number),
            lookup_fields={"tags": tags, "number": number},
            cancel=cancel,
        )
        return RecipesResponse(
            recipes=outcome.payload.recipes,
            from_cache=outcome.from_cache,
            source=outcome.source,
        )

    # ---- maintenance -----------------------------------------------------

    def stats(self) -> dict:
        """Per-kind cache counts plus today's quota usage."""
        return {
            "cache": {kind: store.stats() for kind, store in self.stores.items()},
            "quota": self.ledger.status(),
            "static_recipes": len(self.dataset),
            "provider_quota": self._provider_quota(),
        }

    def _provider_quota(self) -> dict:
        """Points reported by Spoonacular's X-API-Quota-* headers on the last response."""
        for adapter in self.adapters.values():
            quota = getattr(getattr(adapter, "client", None), "last_quota", None)
            if quota:
                return dict(quota)
        return {}

    def invalidate(self, kind: str, key: str) -> int:
        if kind not in self.stores:
            raise ValueError(f"Unknown cache kind: {kind!r}")
        return self.stores[kind].invalidate(key)

    def warm_up(self, queries=(), popular_number: int = keys.DEFAULT_POPULAR_NUMBER) -> dict:
        """Prime the cache with popular recipes and common searches."""
        sources = {"popular": self.popular(number=popular_number).source}
        for q in queries:
            sources[f"search:{q}"] = self.search(q).source
        logger.info("Cache warm-up finished: %s", sources)
        return sources

    def import_static(self) -> dict:
        """
        Seed the recipe cache from the static dataset without spending quota.
        Existing entries are left alone.
        """
        store = self.stores[keys.RECIPE]
        imported = skipped = 0
        for recipe in self.dataset:
            key = keys.recipe_key(recipe.id)
            if store.get_stale(key) is not None:
                skipped += 1
                continue
            store.upsert(key, SingleRecipe(recipe=recipe).to_dict(), recipe_id=recipe.id)
            imported += 1
        logger.info("Imported %d static recipes into the cache (%d already cached)", imported, skipped)
        return {"imported": imported, "skipped": skipped}

    # ---- the chain -------------------------------------------------------

    def _resolve(self, kind, key, params, static, lookup_fields, cancel=None) -> Outcome:
        walk = functools.partial(self._walk, kind, key, params, static, lookup_fields, cancel)
        if self._flights is None:
            return walk()
        return self._flights.run(key, walk, cancel)

    def _walk(self, kind, key, params, static, lookup_fields, cancel) -> Outcome:
        store = self.stores[kind]
        adapter = self.adapters[kind]

        _check_cancel(cancel, key)
        payload = self._read(store, store.get_fresh, key, kind)
        if payload is not None:
            logger.info("Cache HIT for %s", key)
            store.touch_access(key)
            return Outcome(payload, True, SOURCE_FRESH)

        _check_cancel(cancel, key)
        allowance = self.ledger.check_allowance()
        if not allowance.allowed:
            logger.info("Quota low (%d remaining); skipping upstream for %s", allowance.remaining, key)
        else:
            _check_cancel(cancel, key)
            payload = self._call_upstream(adapter, key, params)
            if payload is not None:
                self._record_usage(adapter.endpoint, key)
                self._write(store, key, payload, lookup_fields)
                return Outcome(payload, False, SOURCE_UPSTREAM)

        _check_cancel(cancel, key)
        payload = self._read(store, store.get_stale, key, kind)
        if payload is not None:
            logger.info("Serving stale cache for %s", key)
            store.touch_access(key)
            return Outcome(payload, True, SOURCE_STALE)

        _check_cancel(cancel, key)
        logger.warning("Serving static fallback for %s", key)
        return Outcome(static(), True, SOURCE_STATIC)

    def _read(self, store, lookup, key, kind):
        try:
            record = lookup(key)
        except StoreUnavailable as exc:
            logger.warning("Cache read failed for %s, treating as miss: %s", key, exc)
            return None
        if record is None:
            return None
        try:
            payload = payload_from_dict(record.payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Unreadable cache payload for %s: %s", key, exc)
            return None
        if payload.kind != kind:
            logger.warning("Cache payload for %s has kind %s, expected %s", key, payload.kind, kind)
            return None
        return payload

    def _call_upstream(self, adapter, key, params):
        try:
            logger.info("API CALL %s for %s", adapter.endpoint, key)
            return adapter.call(params)
        except UpstreamError as exc:
            logger.warning("Upstream %s failed for %s: %s", adapter.endpoint, key, exc)
        except (AttributeError, KeyError, TypeError, ValueError):
            logger.exception("Unexpected %s response shape for %s", adapter.endpoint, key)
        return None

    def _record_usage(self, endpoint, key) -> None:
        try:
            self.ledger.record_usage(endpoint)
        except StoreUnavailable as exc:
            logger.warning("Quota usage for %s (%s) not recorded: %s", endpoint, key, exc)

    def _write(self, store, key, payload, lookup_fields) -> None:
        try:
            store.upsert(key, payload.to_dict(), **lookup_fields)
            logger.info("Cached %s for %s", key, store.ttl)
        except StoreUnavailable as exc:
            logger.warning("Could not cache %s: %s", key, exc)


def _check_cancel(cancel, key) -> None:
    if cancel is not None and cancel.is_set():
        raise RequestCancelled(f"Request for {key} was cancelled")


@functools.lru_cache(maxsize=None)
def get_orchestrator() -> FallbackOrchestrator:
    """Process-wide orchestrator wired from settings."""
    cfg = getattr(settings, "RECIPE_CACHE", {}) or {}
    return FallbackOrchestrator(
        stores=default_stores(),
        ledger=QuotaLedger(),
        adapters=default_adapters(),
        dataset=get_fallback_dataset(),
        single_flight=cfg.get("SINGLE_FLIGHT", True),
    )
