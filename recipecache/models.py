"""
Persistent models for the Spoonacular cache and the daily quota ledger.

Notes:
- One table per cache kind; all share the abstract ``CacheRecord`` columns.
- ``payload`` holds the kind's schema from ``recipecache.payloads`` as JSON.
- Records are never deleted on read. Stale rows stay until the expiry sweep
  (``purge_recipe_cache``) or an explicit invalidation removes them.
- Quota usage per endpoint lives in ``QuotaEndpointUsage`` so every counter
  can be bumped with an atomic ``F()`` update.
"""

from django.db import models
from django.utils import timezone


class CacheRecord(models.Model):
    """
    Columns shared by every cache kind.
    A record is fresh while ``now < expires_at`` and stale afterwards.
    """
    kind = ""

    key = models.CharField(
        max_length=512, unique=True,
        help_text="Deterministic key built by recipecache.keys.",
    )
    payload = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)
    last_accessed_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(db_index=True)

    access_count = models.PositiveIntegerField(
        default=0, help_text="Incremented on every cache read; never reset.",
    )

    class Meta:
        abstract = True
        ordering = ["-updated_at"]

    def __str__(self) -> str:
        return self.key


class SearchCache(CacheRecord):
    """complexSearch results (24h)."""
    kind = "search"

    query = models.CharField(max_length=255, blank=True, db_index=True)
    filters = models.JSONField(default=dict, blank=True)

    class Meta(CacheRecord.Meta):
        verbose_name = "search cache entry"
        verbose_name_plural = "search cache entries"


class RecipeCache(CacheRecord):
    """Single recipe information (7 days)."""
    kind = "recipe"

    recipe_id = models.PositiveIntegerField(null=True, blank=True, db_index=True)

    class Meta(CacheRecord.Meta):
        verbose_name = "recipe cache entry"
        verbose_name_plural = "recipe cache entries"


class IngredientSearchCache(CacheRecord):
    """findByIngredients results (2h)."""
    kind = "ingredients"

    ingredients = models.JSONField(default=list, blank=True)

    class Meta(CacheRecord.Meta):
        verbose_name = "ingredient search cache entry"
        verbose_name_plural = "ingredient search cache entries"


class PopularCache(CacheRecord):
    """random/popular recipe lists (6h)."""
    kind = "popular"

    tags = models.JSONField(default=list, blank=True)
    number = models.PositiveSmallIntegerField(default=10)

    class Meta(CacheRecord.Meta):
        verbose_name = "popular recipes cache entry"
        verbose_name_plural = "popular recipes cache entries"


CACHE_MODELS = {
    model.kind: model
    for model in (SearchCache, RecipeCache, IngredientSearchCache, PopularCache)
}


class QuotaRecord(models.Model):
    """
    Upstream usage for one UTC calendar day.
    ``request_count`` always equals the sum of the endpoint counters; both
    are incremented in the same transaction.
    """
    day = models.DateField(unique=True)
    request_count = models.PositiveIntegerField(default=0)
    limit = models.PositiveIntegerField(help_text="Daily ceiling at the time the day started.")
    reset_at = models.DateTimeField(help_text="Start of the next UTC day.")

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-day"]

    def __str__(self) -> str:
        return f"Quota {self.day}: {self.request_count}/{self.limit}"

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.request_count)

    @property
    def per_endpoint_count(self) -> dict[str, int]:
        return {u.endpoint: u.count for u in self.endpoint_usage.all()}


class QuotaEndpointUsage(models.Model):
    """One counter per (day, endpoint)."""
    quota = models.ForeignKey(
        QuotaRecord, on_delete=models.CASCADE, related_name="endpoint_usage",
    )
    endpoint = models.CharField(max_length=32)
    count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["endpoint"]
        constraints = [
            models.UniqueConstraint(
                fields=["quota", "endpoint"], name="uniq_quota_endpoint",
            )
        ]

    def __str__(self) -> str:
        return f"{self.quota.day} {self.endpoint}: {self.count}"
