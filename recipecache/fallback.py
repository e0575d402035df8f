"""
Bundled, read-only recipe set used when the API and the cache both fail.

The data file holds recipes in Spoonacular's ``/information`` shape so it
goes through the same normalization as live responses. Lookups are simple
linear scans; the set is small and loaded once per process.
"""

import functools
import json
import logging
from pathlib import Path

from django.conf import settings

from . import keys
from .payloads import (
    IngredientMatch,
    IngredientRecipe,
    PopularList,
    SearchResult,
    SingleRecipe,
    recipe_detail_from_api,
)

logger = logging.getLogger(__name__)

DEFAULT_DATASET = Path(__file__).resolve().parent / "data" / "fallback_recipes.json"

# search filters the static set understands: filter name -> recipe attribute
_FILTER_FIELDS = {
    "cuisine": "cuisines",
    "diet": "diets",
    "type": "dish_types",
}


def _lower_all(values) -> list[str]:
    return [(v or "").lower() for v in values or []]


def _matches(a: str, b: str) -> bool:
    """Either name contained in the other: 'pepper' ~ 'bell pepper'."""
    return bool(a and b) and (a in b or b in a)


class StaticFallbackDataset:
    def __init__(self, recipes=()):
        self._recipes = tuple(recipes)
        self._by_id = {r.id: r for r in self._recipes}

    def __len__(self) -> int:
        return len(self._recipes)

    def __iter__(self):
        return iter(self._recipes)

    @classmethod
    def from_file(cls, path) -> "StaticFallbackDataset":
        """Load the JSON list at ``path``. A missing or broken file yields an empty set."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Could not load static fallback recipes from %s", path)
            return cls()

        recipes = []
        for item in raw if isinstance(raw, list) else []:
            try:
                recipes.append(recipe_detail_from_api(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed fallback recipe %r: %s", item, exc)
        logger.info("Loaded %d static fallback recipes from %s", len(recipes), path)
        return cls(recipes)

    # ---- lookups -------------------------------------------------------

    def search(self, query: str | None = None, filters: dict | None = None) -> SearchResult:
        """Substring match on title/summary plus cuisine/diet/type filters."""
        filters = dict(filters or {})
        number = int(filters.pop("number", None) or 12)
        offset = int(filters.pop("offset", None) or 0)
        needle = keys.normalize_query(query)

        hits = []
        for r in self._recipes:
            if needle and needle not in r.title.lower() and needle not in r.summary.lower():
                continue
            if not self._passes_filters(r, filters):
                continue
            hits.append(r)
        return SearchResult(
            recipes=hits[offset:offset + number],
            total_results=len(hits),
            number=number,
            offset=offset,
        )

    @staticmethod
    def _passes_filters(recipe, filters: dict) -> bool:
        for name, attr in _FILTER_FIELDS.items():
            wanted = filters.get(name)
            if not wanted:
                continue
            wanted = wanted if isinstance(wanted, (list, tuple)) else str(wanted).split(",")
            have = _lower_all(getattr(recipe, attr))
            if not any(w.strip().lower() in have for w in wanted if w.strip()):
                return False
        return True

    def get(self, recipe_id) -> SingleRecipe:
        try:
            rid = keys.parse_recipe_id(recipe_id)
        except ValueError:
            return SingleRecipe(recipe=None)
        return SingleRecipe(recipe=self._by_id.get(rid))

    def by_ingredients(self, ingredients) -> IngredientMatch:
        """Recipes using the most of ``ingredients`` first."""
        wanted = keys.normalize_ingredients(ingredients)
        scored = []
        for r in self._recipes:
            names = [(i.get("name") or "").lower() for i in r.ingredients]
            used = [w for w in wanted if any(_matches(w, n) for n in names)]
            if not used:
                continue
            missed = [n for n in names if n and not any(_matches(w, n) for w in wanted)]
            scored.append((len(used), -len(missed), r, used, missed))

        scored.sort(key=lambda s: (-s[0], -s[1], s[2].id))
        base_fields = {f for f in IngredientRecipe.__dataclass_fields__}
        out = []
        for _, _, r, used, missed in scored:
            summary = {k: v for k, v in r.to_dict().items() if k in base_fields}
            summary.update(used_ingredients=used, missed_ingredients=missed, likes=r.likes)
            out.append(IngredientRecipe(**summary))
        return IngredientMatch(recipes=out)

    def popular(self, tags=None, number: int = keys.DEFAULT_POPULAR_NUMBER) -> PopularList:
        """Most-liked recipes carrying every requested tag."""
        wanted = {(t or "").strip().lower() for t in tags or [] if (t or "").strip()}
        hits = []
        for r in self._recipes:
            labels = set(_lower_all(r.cuisines) + _lower_all(r.diets) + _lower_all(r.dish_types))
            if wanted <= labels:
                hits.append(r)
        hits.sort(key=lambda r: (-r.likes, r.id))
        return PopularList(recipes=hits[: int(number)])


@functools.lru_cache(maxsize=None)
def _load(path: str) -> StaticFallbackDataset:
    return StaticFallbackDataset.from_file(path)


def get_fallback_dataset(path=None) -> StaticFallbackDataset:
    """Process-wide dataset for ``path`` (settings.RECIPE_CACHE['FALLBACK_DATASET'])."""
    if path is None:
        cfg = getattr(settings, "RECIPE_CACHE", {}) or {}
        path = cfg.get("FALLBACK_DATASET") or DEFAULT_DATASET
    return _load(str(path))
