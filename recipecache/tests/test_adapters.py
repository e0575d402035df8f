from unittest.mock import MagicMock

from django.test import SimpleTestCase

from recipecache.adapters import (
    IngredientsAdapter,
    PopularAdapter,
    RecipeAdapter,
    SearchAdapter,
    default_adapters,
)
from recipecache.exceptions import UpstreamError
from recipecache.payloads import IngredientMatch, PopularList, SearchResult, SingleRecipe

RECIPE_JSON = {
    "id": 1234,
    "title": "Chicken &amp; Peppers",
    "image": "https://img.test/chicken.jpg",
    "summary": "<b>Quick</b> weeknight dinner.",
    "readyInMinutes": 25,
    "servings": 2,
    "cuisines": ["Mexican"],
    "diets": ["gluten free"],
    "dishTypes": ["dinner"],
    "aggregateLikes": 12,
    "extendedIngredients": [
        {"id": 1, "name": "chicken breast", "amount": 2, "unit": "", "original": "2 chicken breasts"},
    ],
    "analyzedInstructions": [{"steps": [{"number": 1, "step": "Cook chicken."}]}],
    "nutrition": {
        "nutrients": [
            {"name": "Calories", "amount": 420},
            {"name": "Protein", "amount": 35},
            {"name": "Carbohydrates", "amount": 10},
            {"name": "Fat", "amount": 18},
        ]
    },
}


class SearchAdapterTests(SimpleTestCase):
    def test_builds_complex_search_request(self):
        client = MagicMock()
        client.get.return_value = {"results": [RECIPE_JSON], "totalResults": 57}
        result = SearchAdapter(client).call({"query": " pasta ", "diet": "vegan", "number": 5})

        self.assertIsInstance(result, SearchResult)
        self.assertEqual(result.total_results, 57)
        self.assertEqual(result.recipes[0].title, "Chicken &amp; Peppers")
        self.assertEqual(result.recipes[0].summary, "Quick weeknight dinner.")

        path, request = client.get.call_args.args
        self.assertEqual(path, "recipes/complexSearch")
        self.assertEqual(request["query"], "pasta")
        self.assertEqual(request["diet"], "vegan")
        self.assertEqual(request["number"], 5)
        self.assertEqual(request["addRecipeInformation"], "true")
        self.assertEqual(client.get.call_args.kwargs, {"endpoint": "search"})


class RecipeAdapterTests(SimpleTestCase):
    def test_normalizes_detail(self):
        client = MagicMock()
        client.get.return_value = RECIPE_JSON
        result = RecipeAdapter(client).call({"id": 1234})

        self.assertIsInstance(result, SingleRecipe)
        recipe = result.recipe
        self.assertEqual(recipe.id, 1234)
        self.assertEqual(recipe.likes, 12)
        self.assertEqual(recipe.instructions, [{"number": 1, "step": "Cook chicken."}])
        self.assertEqual(recipe.nutrition["protein_g"], 35.0)
        self.assertEqual(recipe.ingredients[0]["name"], "chicken breast")
        self.assertEqual(client.get.call_args.args[0], "recipes/1234/information")

    def test_not_found_propagates(self):
        client = MagicMock()
        client.get.side_effect = UpstreamError("nope", endpoint="recipe", status_code=404)
        with self.assertRaises(UpstreamError) as ctx:
            RecipeAdapter(client).call({"id": 1})
        self.assertEqual(ctx.exception.status_code, 404)

    def test_empty_body_is_an_error(self):
        client = MagicMock()
        client.get.return_value = {}
        with self.assertRaises(UpstreamError):
            RecipeAdapter(client).call({"id": 1})

    def test_other_errors_propagate(self):
        client = MagicMock()
        client.get.side_effect = UpstreamError("down", endpoint="recipe", status_code=503)
        with self.assertRaises(UpstreamError):
            RecipeAdapter(client).call({"id": 1})


class IngredientsAdapterTests(SimpleTestCase):
    FOUND = [
        {
            "id": 1234,
            "title": "Chicken & Peppers",
            "image": "https://img.test/chicken.jpg",
            "usedIngredients": [{"name": "chicken breast"}, {"name": "bell pepper"}],
            "missedIngredients": [{"name": "lime"}],
            "likes": 3,
        }
    ]

    def test_hits_enriched_with_information_bulk(self):
        client = MagicMock()

        def side_effect(path, params=None, endpoint=None):
            if "findByIngredients" in path:
                self.assertEqual(params["ingredients"], "bell pepper,chicken breast")
                return self.FOUND
            if "informationBulk" in path:
                self.assertEqual(params["ids"], "1234")
                return [RECIPE_JSON]
            raise AssertionError(path)

        client.get.side_effect = side_effect
        result = IngredientsAdapter(client).call({"ingredients": ["chicken breast", "Bell Pepper"]})

        self.assertIsInstance(result, IngredientMatch)
        recipe = result.recipes[0]
        self.assertEqual(recipe.used_ingredients, ["chicken breast", "bell pepper"])
        self.assertEqual(recipe.missed_ingredient_count, 1)
        self.assertEqual(recipe.ready_in_minutes, 25)

    def test_bulk_failure_keeps_hits(self):
        client = MagicMock()
        client.get.side_effect = [self.FOUND, UpstreamError("bulk down", endpoint="ingredients")]
        result = IngredientsAdapter(client).call({"ingredients": ["chicken breast"]})

        self.assertEqual(len(result.recipes), 1)
        self.assertEqual(result.recipes[0].title, "Chicken & Peppers")
        self.assertIsNone(result.recipes[0].ready_in_minutes)

    def test_no_hits_skips_bulk(self):
        client = MagicMock()
        client.get.return_value = []
        result = IngredientsAdapter(client).call({"ingredients": ["gravel"]})
        self.assertEqual(result.recipes, [])
        self.assertEqual(client.get.call_count, 1)


class PopularAdapterTests(SimpleTestCase):
    def test_tags_sent_as_include_tags(self):
        client = MagicMock()
        client.get.return_value = {"recipes": [RECIPE_JSON]}
        result = PopularAdapter(client).call({"tags": ["Vegan", "dessert"], "number": 3})

        self.assertIsInstance(result, PopularList)
        self.assertEqual(len(result.recipes), 1)
        path, request = client.get.call_args.args
        self.assertEqual(path, "recipes/random")
        self.assertEqual(request, {"number": 3, "include-tags": "dessert,vegan"})


class DefaultAdaptersTests(SimpleTestCase):
    def test_keyed_by_ledger_endpoint(self):
        client = MagicMock()
        adapters = default_adapters(client)
        self.assertEqual(set(adapters), {"search", "recipe", "ingredients", "popular"})
        self.assertTrue(all(a.client is client for a in adapters.values()))


class UnexpectedBodyTests(SimpleTestCase):
    def test_list_where_object_expected(self):
        client = MagicMock()
        client.get.return_value = ["unexpected"]
        for adapter, params in (
            (SearchAdapter(client), {"query": "pasta"}),
            (RecipeAdapter(client), {"id": 1}),
            (PopularAdapter(client), {}),
        ):
            with self.assertRaises(UpstreamError):
                adapter.call(params)

    def test_object_where_list_expected(self):
        client = MagicMock()
        client.get.return_value = {"status": "failure"}
        with self.assertRaises(UpstreamError):
            IngredientsAdapter(client).call({"ingredients": ["egg"]})

    def test_non_object_items_skipped(self):
        client = MagicMock()
        client.get.return_value = {"results": ["x", None, {"id": 3, "title": "Toast"}]}
        result = SearchAdapter(client).call({"query": "toast"})
        self.assertEqual([r.id for r in result.recipes], [3])
