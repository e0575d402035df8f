from datetime import timedelta
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from recipecache.exceptions import StoreUnavailable
from recipecache.models import RecipeCache, SearchCache
from recipecache.store import CacheStore, purge_expired, ttl_for


class CacheStoreTests(TestCase):
    def setUp(self):
        self.store = CacheStore(SearchCache)
        self.now = timezone.now()

    def test_ttl_from_settings(self):
        self.assertEqual(self.store.ttl, timedelta(hours=24))
        self.assertEqual(ttl_for("recipe"), timedelta(days=7))
        self.assertEqual(ttl_for("ingredients"), timedelta(hours=2))
        self.assertEqual(ttl_for("popular"), timedelta(hours=6))

    def test_expired_record_is_stale_not_fresh(self):
        self.store.upsert("search:pasta:", {"kind": "search"}, ttl=timedelta(seconds=-1), now=self.now)

        self.assertIsNone(self.store.get_fresh("search:pasta:", now=self.now))
        self.assertIsNotNone(self.store.get_stale("search:pasta:"))

    def test_fresh_until_expiry(self):
        self.store.upsert("search:pasta:", {"kind": "search"}, now=self.now)
        record = self.store.get_fresh("search:pasta:", now=self.now + timedelta(hours=23))
        self.assertIsNotNone(record)
        self.assertIsNone(self.store.get_fresh("search:pasta:", now=self.now + timedelta(hours=24)))

    def test_upsert_refreshes_expiry_and_keeps_counters(self):
        self.store.upsert("search:pasta:", {"kind": "search", "n": 1}, now=self.now)
        self.store.touch_access("search:pasta:")
        later = self.now + timedelta(hours=30)
        self.store.upsert("search:pasta:", {"kind": "search", "n": 2}, now=later, query="pasta")

        record = SearchCache.objects.get(key="search:pasta:")
        self.assertEqual(SearchCache.objects.count(), 1)
        self.assertEqual(record.payload["n"], 2)
        self.assertEqual(record.expires_at, later + timedelta(hours=24))
        self.assertEqual(record.access_count, 1)
        self.assertEqual(record.query, "pasta")

    def test_touch_access(self):
        self.store.upsert("search:pasta:", {}, now=self.now)
        self.assertTrue(self.store.touch_access("search:pasta:"))
        self.assertTrue(self.store.touch_access("search:pasta:"))
        self.assertEqual(SearchCache.objects.get().access_count, 2)
        self.assertFalse(self.store.touch_access("search:missing:"))

    def test_touch_access_never_raises(self):
        with patch.object(SearchCache.objects, "filter", side_effect=DatabaseError("locked")):
            self.assertFalse(self.store.touch_access("search:pasta:"))

    def test_read_failure_raises_store_unavailable(self):
        with patch.object(SearchCache.objects, "filter", side_effect=DatabaseError("locked")):
            with self.assertRaises(StoreUnavailable):
                self.store.get_fresh("search:pasta:")

    def test_invalidate(self):
        self.store.upsert("search:pasta:", {}, now=self.now)
        self.assertEqual(self.store.invalidate("search:pasta:"), 1)
        self.assertIsNone(self.store.get_stale("search:pasta:"))

    def test_stats(self):
        self.store.upsert("search:a:", {}, now=self.now)
        self.store.upsert("search:b:", {}, ttl=timedelta(seconds=-1), now=self.now)
        self.store.touch_access("search:a:")
        self.assertEqual(
            self.store.stats(now=self.now),
            {"total": 2, "fresh": 1, "stale": 1, "accesses": 1},
        )


class PurgeExpiredTests(TestCase):
    def test_only_expired_rows_removed(self):
        now = timezone.now()
        search = CacheStore(SearchCache)
        recipes = CacheStore(RecipeCache)
        search.upsert("search:old:", {}, ttl=timedelta(seconds=-5), now=now)
        search.upsert("search:new:", {}, now=now)
        recipes.upsert("recipe:1", {}, ttl=timedelta(seconds=-5), now=now, recipe_id=1)

        deleted = purge_expired({"search": search, "recipe": recipes}, now=now)

        self.assertEqual(deleted, {"search": 1, "recipe": 1})
        self.assertEqual(list(SearchCache.objects.values_list("key", flat=True)), ["search:new:"])
        self.assertFalse(RecipeCache.objects.exists())
