from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from recipecache.fallback import get_fallback_dataset
from recipecache.models import SearchCache
from recipecache.payloads import PopularList, SearchResult
from recipecache.store import CacheStore

from .helpers import FakeAdapter, build_orchestrator, detail, summary

User = get_user_model()


class CacheApiTests(TestCase):
    """JSON endpoints with a fake upstream.

    Verifies:
        - read endpoints always answer 200 with a ``source``
        - malformed parameters are rejected with 400
        - maintenance endpoints report stats and sweep the cache
    """

    def setUp(self):
        self.search_adapter = FakeAdapter(
            "search", SearchResult(recipes=[summary(101, "Pasta Carbonara")], total_results=1, number=12)
        )
        self.orch = build_orchestrator(
            {
                "search": self.search_adapter,
                "popular": FakeAdapter("popular", PopularList([detail(7, "Cake")])),
            },
            recipes=get_fallback_dataset(),
        )
        patcher = patch("recipecache.views.get_orchestrator", return_value=self.orch)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.staff = User.objects.create_user(username="ops", password="pass123", is_staff=True)
        self.client.force_login(self.staff)

    def test_search(self):
        resp = self.client.get(reverse("recipecache:search"), {"q": "pasta", "cuisine": "italian", "number": "12"})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["source"], "upstream")
        self.assertFalse(data["from_cache"])
        self.assertEqual(data["recipes"][0]["title"], "Pasta Carbonara")
        self.assertEqual(self.search_adapter.calls[0], {"query": "pasta", "cuisine": "italian", "number": 12})

        again = self.client.get(reverse("recipecache:search"), {"q": "pasta", "number": "12", "cuisine": "italian"})
        self.assertTrue(again.json()["data"]["from_cache"])

    def test_search_rejects_bad_number(self):
        resp = self.client.get(reverse("recipecache:search"), {"q": "pasta", "maxReadyTime": "soon"})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])

    def test_recipe_detail_from_static(self):
        resp = self.client.get(reverse("recipecache:recipe_detail", args=["spoonacular-654959"]))
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["source"], "static")
        self.assertEqual(data["recipe"]["title"], "Pasta With Tuna")

    def test_recipe_detail_not_found(self):
        resp = self.client.get(reverse("recipecache:recipe_detail", args=["1"]))
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["data"]["recipe"])
        self.assertEqual(resp.json()["message"], "Recipe not found")

    def test_recipe_detail_bad_id(self):
        resp = self.client.get(reverse("recipecache:recipe_detail", args=["abc"]))
        self.assertEqual(resp.status_code, 400)

    def test_by_ingredients(self):
        resp = self.client.get(reverse("recipecache:by_ingredients"), {"ingredients": "chicken breast, bell pepper,onion"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["recipes"][0]["id"], 638420)

        self.assertEqual(self.client.get(reverse("recipecache:by_ingredients")).status_code, 400)

    def test_popular(self):
        resp = self.client.get(reverse("recipecache:popular"), {"tags": "dessert", "number": "1"})
        self.assertEqual(resp.json()["data"]["recipes"][0]["title"], "Cake")
        self.assertEqual(self.client.get(reverse("recipecache:popular"), {"number": "500"}).status_code, 400)
        self.assertEqual(self.client.get(reverse("recipecache:popular"), {"number": "ten"}).status_code, 400)

    def test_stats_and_quota(self):
        self.client.get(reverse("recipecache:search"), {"q": "pasta"})

        stats = self.client.get(reverse("recipecache:stats")).json()["data"]
        self.assertEqual(stats["cache"]["search"]["total"], 1)
        self.assertEqual(stats["static_recipes"], 12)

        quota = self.client.get(reverse("recipecache:quota")).json()["data"]
        self.assertEqual(quota["used"], 1)
        self.assertEqual(quota["endpoints"], {"search": 1})

    def test_clear_expired(self):
        CacheStore(SearchCache).upsert("search:old:", {}, ttl=timedelta(seconds=-1))
        resp = self.client.post(reverse("recipecache:clear_expired"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["deleted"]["search"], 1)
        self.assertFalse(SearchCache.objects.exists())

    def test_clear_expired_requires_post(self):
        self.assertEqual(self.client.get(reverse("recipecache:clear_expired")).status_code, 405)

    def test_warmup(self):
        resp = self.client.post(
            reverse("recipecache:warmup"), {"queries": ["pasta"]}, content_type="application/json"
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"], {"popular": "upstream", "search:pasta": "upstream"})

        bad = self.client.post(reverse("recipecache:warmup"), {"queries": "pasta"}, content_type="application/json")
        self.assertEqual(bad.status_code, 400)


class MaintenanceAccessTests(TestCase):
    def setUp(self):
        self.adapter = FakeAdapter("popular", PopularList([detail(7, "Cake")]))
        patcher = patch(
            "recipecache.views.get_orchestrator",
            return_value=build_orchestrator({"popular": self.adapter}, recipes=get_fallback_dataset()),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_anonymous_cannot_spend_quota(self):
        resp = self.client.post(reverse("recipecache:warmup"), {"queries": ["pasta"]}, content_type="application/json")
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(self.adapter.calls, [])
        self.assertEqual(self.client.post(reverse("recipecache:clear_expired")).status_code, 403)
        self.assertEqual(self.client.get(reverse("recipecache:stats")).status_code, 403)
        self.assertEqual(self.client.get(reverse("recipecache:quota")).status_code, 403)

    def test_non_staff_rejected(self):
        User.objects.create_user(username="cook", password="pass123")
        self.client.login(username="cook", password="pass123")
        self.assertEqual(self.client.post(reverse("recipecache:clear_expired")).status_code, 403)

    def test_reads_stay_public(self):
        resp = self.client.get(reverse("recipecache:popular"), {"number": "1"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["source"], "upstream")
