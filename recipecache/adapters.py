"""
One adapter per Spoonacular operation.

Each ``call(params)`` performs one logical upstream request (it may issue
more than one HTTP call, e.g. findByIngredients + informationBulk) and
returns the kind's payload from ``recipecache.payloads``. Errors propagate
as ``UpstreamError``; cache and quota bookkeeping happen in the orchestrator.
"""

import logging

from . import keys
from .exceptions import UpstreamError
from .payloads import (
    IngredientMatch,
    PopularList,
    SearchResult,
    SingleRecipe,
    ingredient_recipe_from_api,
    recipe_detail_from_api,
    recipe_summary_from_api,
)
from .spoonacular import SpoonacularClient

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_NUMBER = 12
DEFAULT_INGREDIENT_NUMBER = 12


def _expect(data, shape: type, endpoint: str, path: str):
    """Reject 200 bodies that are not the JSON shape the endpoint documents."""
    if not isinstance(data, shape):
        raise UpstreamError(
            f"{path} returned {type(data).__name__}, expected {shape.__name__}",
            endpoint=endpoint,
        )
    return data


def _records(items) -> list[dict]:
    return [r for r in items or [] if isinstance(r, dict) and r.get("id")]


def _param(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(v) for v in value)
    return str(value)


class EndpointAdapter:
    """Base adapter; ``endpoint`` is the name charged in the quota ledger."""
    endpoint = ""

    def __init__(self, client: SpoonacularClient):
        self.client = client

    def __repr__(self) -> str:
        return f"<{type(self).__name__} endpoint={self.endpoint}>"

    def call(self, params: dict):
        raise NotImplementedError


class SearchAdapter(EndpointAdapter):
    """complexSearch with recipe information inlined."""
    endpoint = keys.SEARCH

    def call(self, params: dict) -> SearchResult:
        params = dict(params or {})
        query = (params.pop("query", "") or "").strip()
        number = int(params.pop("number", None) or DEFAULT_SEARCH_NUMBER)
        offset = int(params.pop("offset", None) or 0)

        request = {
            "query": query,
            "addRecipeInformation": "true",
            "fillIngredients": "true",
            "number": number,
            "offset": offset,
        }
        for name, value in params.items():
            if value is not None and value != "":
                request[name] = _param(value)

        path = "recipes/complexSearch"
        data = _expect(self.client.get(path, request, endpoint=self.endpoint), dict, self.endpoint, path)
        recipes = [recipe_summary_from_api(r) for r in _records(data.get("results"))]
        return SearchResult(
            recipes=recipes,
            total_results=int(data.get("totalResults") or len(recipes)),
            number=number,
            offset=offset,
        )


class RecipeAdapter(EndpointAdapter):
    """Single recipe information including nutrition."""
    endpoint = keys.RECIPE

    def call(self, params: dict) -> SingleRecipe:
        rid = keys.parse_recipe_id(params.get("id"))
        path = f"recipes/{rid}/information"
        # a 404 propagates as UpstreamError like any other failed call
        data = self.client.get(path, {"includeNutrition": "true"}, endpoint=self.endpoint)
        data = _expect(data, dict, self.endpoint, path)
        if not data.get("id"):
            raise UpstreamError(f"{path} returned no recipe", endpoint=self.endpoint)
        return SingleRecipe(recipe=recipe_detail_from_api(data))


class IngredientsAdapter(EndpointAdapter):
    """findByIngredients, then one informationBulk call to fill in details."""
    endpoint = keys.INGREDIENTS

    def call(self, params: dict) -> IngredientMatch:
        names = keys.normalize_ingredients(params.get("ingredients") or [])
        number = int(params.get("number") or DEFAULT_INGREDIENT_NUMBER)
        path = "recipes/findByIngredients"
        found = self.client.get(
            path,
            {
                "ingredients": ",".join(names),
                "number": number,
                "ranking": 1,  # maximize used ingredients
                "ignorePantry": "true",
            },
            endpoint=self.endpoint,
        )
        found = _records(_expect(found, list, self.endpoint, path))
        if not found:
            return IngredientMatch(recipes=[])

        details = {}
        ids = ",".join(str(f["id"]) for f in found)
        try:
            bulk_path = "recipes/informationBulk"
            bulk = self.client.get(bulk_path, {"ids": ids}, endpoint=self.endpoint)
            details = {str(d["id"]): d for d in _records(_expect(bulk, list, self.endpoint, bulk_path))}
        except UpstreamError as exc:
            # hits alone are still a usable answer
            logger.warning("informationBulk failed for %s: %s", ids, exc)

        return IngredientMatch(
            recipes=[ingredient_recipe_from_api(f, details.get(str(f["id"]))) for f in found]
        )


class PopularAdapter(EndpointAdapter):
    """Random recipes, optionally restricted by tags."""
    endpoint = keys.POPULAR

    def call(self, params: dict) -> PopularList:
        tags = sorted({(t or "").strip().lower() for t in params.get("tags") or [] if (t or "").strip()})
        number = int(params.get("number") or keys.DEFAULT_POPULAR_NUMBER)
        request = {"number": number}
        if tags:
            request["include-tags"] = ",".join(tags)
        path = "recipes/random"
        data = _expect(self.client.get(path, request, endpoint=self.endpoint), dict, self.endpoint, path)
        return PopularList(recipes=[recipe_detail_from_api(r) for r in _records(data.get("recipes"))])


def default_adapters(client: SpoonacularClient | None = None) -> dict[str, EndpointAdapter]:
    """All four adapters sharing one paced client."""
    client = client or SpoonacularClient()
    return {
        adapter.endpoint: adapter
        for adapter in (
            SearchAdapter(client),
            RecipeAdapter(client),
            IngredientsAdapter(client),
            PopularAdapter(client),
        )
    }
