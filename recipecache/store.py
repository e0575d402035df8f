"""
ORM-backed cache store, one instance per cache kind.

Read path: ``get_fresh`` / ``get_stale`` raise ``StoreUnavailable`` when the
database cannot be reached so the orchestrator can degrade to the next
source. ``touch_access`` never raises.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError
from django.db.models import F, Sum
from django.utils import timezone

from .exceptions import StoreUnavailable
from .models import CACHE_MODELS

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = {
    "search": 24 * 60 * 60,
    "recipe": 7 * 24 * 60 * 60,
    "ingredients": 2 * 60 * 60,
    "popular": 6 * 60 * 60,
}


def ttl_for(kind: str) -> timedelta:
    """TTL for a cache kind from settings.RECIPE_CACHE['TTL_SECONDS']."""
    configured = (getattr(settings, "RECIPE_CACHE", {}) or {}).get("TTL_SECONDS") or {}
    return timedelta(seconds=configured.get(kind, DEFAULT_TTL_SECONDS[kind]))


class CacheStore:
    """Fresh/stale lookups and TTL-stamped upserts for one cache model."""

    def __init__(self, model, ttl: timedelta | None = None):
        self.model = model
        self.ttl = ttl if ttl is not None else ttl_for(model.kind)

    def __repr__(self) -> str:
        return f"<CacheStore {self.kind} ttl={self.ttl}>"

    @property
    def kind(self) -> str:
        return self.model.kind

    def _unavailable(self, op: str, exc: Exception) -> StoreUnavailable:
        return StoreUnavailable(f"{self.kind} cache {op} failed: {exc}")

    # ---- reads -------------------------------------------------------------

    def get_fresh(self, key: str, now=None):
        """Record for ``key`` only while ``now < expires_at``."""
        now = now or timezone.now()
        try:
            return self.model.objects.filter(key=key, expires_at__gt=now).first()
        except DatabaseError as exc:
            raise self._unavailable("read", exc) from exc

    def get_stale(self, key: str):
        """Record for ``key`` regardless of expiry."""
        try:
            return self.model.objects.filter(key=key).first()
        except DatabaseError as exc:
            raise self._unavailable("read", exc) from exc

    def touch_access(self, key: str, now=None) -> bool:
        """Bump access_count/last_accessed_at. Failures are logged, never raised."""
        try:
            updated = self.model.objects.filter(key=key).update(
                access_count=F("access_count") + 1,
                last_accessed_at=now or timezone.now(),
            )
            return bool(updated)
        except DatabaseError as exc:
            logger.warning("Could not record access for %s: %s", key, exc)
            return False

    # ---- writes ------------------------------------------------------------

    def upsert(self, key: str, payload: dict, ttl: timedelta | None = None, now=None, **fields):
        """
        Write or overwrite ``key``. ``expires_at`` is reset to ``now + ttl``
        on every write; ``access_count`` and ``created_at`` are preserved.
        Extra keyword arguments set the kind's lookup columns (query, tags...).
        """
        now = now or timezone.now()
        defaults = {
            "payload": payload,
            "updated_at": now,
            "expires_at": now + (ttl if ttl is not None else self.ttl),
            **fields,
        }
        try:
            obj, _ = self.model.objects.update_or_create(key=key, defaults=defaults)
            return obj
        except DatabaseError as exc:
            raise self._unavailable("write", exc) from exc

    def invalidate(self, key: str) -> int:
        try:
            deleted, _ = self.model.objects.filter(key=key).delete()
            return deleted
        except DatabaseError as exc:
            raise self._unavailable("delete", exc) from exc

    def purge_expired(self, now=None) -> int:
        now = now or timezone.now()
        try:
            deleted, _ = self.model.objects.filter(expires_at__lt=now).delete()
            return deleted
        except DatabaseError as exc:
            raise self._unavailable("purge", exc) from exc

    # ---- stats -------------------------------------------------------------

    def stats(self, now=None) -> dict:
        now = now or timezone.now()
        try:
            qs = self.model.objects.all()
            total = qs.count()
            fresh = qs.filter(expires_at__gt=now).count()
            accesses = qs.aggregate(n=Sum("access_count"))["n"] or 0
        except DatabaseError as exc:
            raise self._unavailable("stats", exc) from exc
        return {"total": total, "fresh": fresh, "stale": total - fresh, "accesses": accesses}


def default_stores() -> dict[str, CacheStore]:
    return {kind: CacheStore(model) for kind, model in CACHE_MODELS.items()}


def purge_expired(stores: dict[str, CacheStore] | None = None, now=None) -> dict[str, int]:
    """Delete records whose ``expires_at < now`` across every kind."""
    now = now or timezone.now()
    stores = stores or default_stores()
    deleted = {kind: store.purge_expired(now=now) for kind, store in stores.items()}
    logger.info("Purged expired cache entries: %s", deleted)
    return deleted
