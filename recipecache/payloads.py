"""
Cache payload schemas and Spoonacular normalization.

Every cache kind stores one of four tagged payloads:

    SearchResult     {"kind": "search", "recipes": [...], "total_results": 42, ...}
    SingleRecipe     {"kind": "recipe", "recipe": {...} | None}
    IngredientMatch  {"kind": "ingredients", "recipes": [...]}
    PopularList      {"kind": "popular", "recipes": [...]}

Recipes inside a payload are ``RecipeSummary``/``RecipeDetail``/``IngredientRecipe``
dataclasses built from raw Spoonacular JSON by the ``*_from_api`` helpers.
"""

from __future__ import annotations

import html
import re
from dataclasses import asdict, dataclass, field, fields

SUMMARY_LIMIT = 300

_TAG_RE = re.compile(r"<[^>]*>")
_NUMBER_RE = re.compile(r"[-+]?\d*\.?\d+")
_BREAK_RE = re.compile(r"</(?:li|p)>|<br\s*/?>", re.IGNORECASE)


# ---------------------------------------------------------------------
# Text / number helpers
# ---------------------------------------------------------------------

def strip_html(text: str | None) -> str:
    """Drop tags and entities from Spoonacular's HTML summaries."""
    plain = html.unescape(_TAG_RE.sub("", text or ""))
    return " ".join(plain.split())


def summarize(text: str | None, limit: int = SUMMARY_LIMIT) -> str:
    plain = strip_html(text)
    if len(plain) <= limit:
        return plain
    return plain[:limit].rstrip() + "..."


def _number_from_str(val) -> float:
    """Extract first number from strings like '270kcal', '12 g' -> 270.0 / 12.0"""
    m = _NUMBER_RE.search(str(val or ""))
    return float(m.group(0)) if m else 0.0


def _int_or_none(val) -> int | None:
    try:
        return int(val) if val is not None else None
    except (TypeError, ValueError):
        return None


def _pick_macro(nutrients, name_prefix: str):
    """
    From Spoonacular 'nutrition.nutrients', pick first item whose name starts with prefix.
    Examples: 'Calories', 'Protein', 'Carbohydrates', 'Fat'
    """
    prefix = name_prefix.lower()
    for n in nutrients or []:
        if (n.get("name") or "").lower().startswith(prefix):
            return _number_from_str(n.get("amount"))
    return None


def macros_from_nutrition(nutrition: dict | None) -> dict:
    """{calories, protein_g, carbs_g, fat_g} per serving, empty when unknown."""
    nutrients = (nutrition or {}).get("nutrients") or []
    if not nutrients:
        return {}
    return {
        "calories": _pick_macro(nutrients, "calories"),
        "protein_g": _pick_macro(nutrients, "protein"),
        "carbs_g": _pick_macro(nutrients, "carbo"),
        "fat_g": _pick_macro(nutrients, "fat"),
    }


def _names(items) -> list[str]:
    out = []
    for it in items or []:
        name = it.get("name") if isinstance(it, dict) else it
        name = (name or "").strip().lower()
        if name and name not in out:
            out.append(name)
    return out


# ---------------------------------------------------------------------
# Recipe shapes
# ---------------------------------------------------------------------

@dataclass
class RecipeSummary:
    id: int
    title: str
    image: str | None = None
    summary: str = ""
    ready_in_minutes: int | None = None
    servings: int | None = None
    cuisines: list[str] = field(default_factory=list)
    diets: list[str] = field(default_factory=list)
    dish_types: list[str] = field(default_factory=list)
    source_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict):
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in names})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RecipeDetail(RecipeSummary):
    ingredients: list[dict] = field(default_factory=list)
    instructions: list[dict] = field(default_factory=list)
    nutrition: dict = field(default_factory=dict)
    likes: int = 0


@dataclass
class IngredientRecipe(RecipeSummary):
    used_ingredients: list[str] = field(default_factory=list)
    missed_ingredients: list[str] = field(default_factory=list)
    likes: int = 0

    @property
    def used_ingredient_count(self) -> int:
        return len(self.used_ingredients)

    @property
    def missed_ingredient_count(self) -> int:
        return len(self.missed_ingredients)


def _source_url(data: dict) -> str | None:
    return data.get("sourceUrl") or data.get("spoonacularSourceUrl") or None


def recipe_summary_from_api(data: dict) -> RecipeSummary:
    return RecipeSummary(
        id=int(data["id"]),
        title=data.get("title") or "Recipe",
        image=data.get("image") or None,
        summary=summarize(data.get("summary")),
        ready_in_minutes=_int_or_none(data.get("readyInMinutes")),
        servings=_int_or_none(data.get("servings")),
        cuisines=list(data.get("cuisines") or []),
        diets=list(data.get("diets") or []),
        dish_types=list(data.get("dishTypes") or []),
        source_url=_source_url(data),
    )


def ingredients_from_api(extended) -> list[dict]:
    out = []
    for ing in extended or []:
        if not isinstance(ing, dict):
            continue
        out.append(
            {
                "id": _int_or_none(ing.get("id")),
                "name": ing.get("name") or ing.get("originalName") or "",
                "amount": ing.get("amount"),
                "unit": ing.get("unit") or "",
                "original": ing.get("original") or "",
            }
        )
    return out


def instructions_from_api(analyzed, plain_text: str | None = None) -> list[dict]:
    """Flatten analyzedInstructions blocks into numbered steps."""
    steps = []
    for block in analyzed or []:
        if not isinstance(block, dict):
            continue
        for s in block.get("steps") or []:
            text = (s.get("step") or "").strip()
            if text:
                steps.append(text)
    if not steps and plain_text:
        lines = _BREAK_RE.sub("\n", plain_text).split("\n")
        steps = [strip_html(line) for line in lines if strip_html(line)]
    return [{"number": i, "step": text} for i, text in enumerate(steps, start=1)]


def recipe_detail_from_api(data: dict) -> RecipeDetail:
    base = recipe_summary_from_api(data)
    return RecipeDetail(
        **asdict(base),
        ingredients=ingredients_from_api(data.get("extendedIngredients")),
        instructions=instructions_from_api(data.get("analyzedInstructions"), data.get("instructions")),
        nutrition=macros_from_nutrition(data.get("nutrition")),
        likes=int(data.get("aggregateLikes") or 0),
    )


def ingredient_recipe_from_api(found: dict, detail: dict | None = None) -> IngredientRecipe:
    """Merge a findByIngredients hit with its informationBulk details."""
    merged = dict(detail or {})
    merged.setdefault("id", found.get("id"))
    merged["title"] = merged.get("title") or found.get("title")
    merged["image"] = merged.get("image") or found.get("image")
    base = recipe_summary_from_api(merged)
    return IngredientRecipe(
        **asdict(base),
        used_ingredients=_names(found.get("usedIngredients")),
        missed_ingredients=_names(found.get("missedIngredients")),
        likes=int(found.get("likes") or 0),
    )


# ---------------------------------------------------------------------
# Tagged payloads
# ---------------------------------------------------------------------

@dataclass
class SearchResult:
    kind = "search"

    recipes: list[RecipeSummary] = field(default_factory=list)
    total_results: int = 0
    number: int = 0
    offset: int = 0

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "recipes": [r.to_dict() for r in self.recipes],
            "total_results": self.total_results,
            "number": self.number,
            "offset": self.offset,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SearchResult":
        return cls(
            recipes=[RecipeSummary.from_dict(r) for r in data.get("recipes") or []],
            total_results=int(data.get("total_results") or 0),
            number=int(data.get("number") or 0),
            offset=int(data.get("offset") or 0),
        )


@dataclass
class SingleRecipe:
    kind = "recipe"

    recipe: RecipeDetail | None = None

    def to_dict(self) -> dict:
        return {"kind": self.kind, "recipe": self.recipe.to_dict() if self.recipe else None}

    @classmethod
    def from_dict(cls, data: dict) -> "SingleRecipe":
        raw = data.get("recipe")
        return cls(recipe=RecipeDetail.from_dict(raw) if raw else None)


@dataclass
class IngredientMatch:
    kind = "ingredients"

    recipes: list[IngredientRecipe] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "recipes": [r.to_dict() for r in self.recipes]}

    @classmethod
    def from_dict(cls, data: dict) -> "IngredientMatch":
        return cls(recipes=[IngredientRecipe.from_dict(r) for r in data.get("recipes") or []])


@dataclass
class PopularList:
    kind = "popular"

    recipes: list[RecipeDetail] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "recipes": [r.to_dict() for r in self.recipes]}

    @classmethod
    def from_dict(cls, data: dict) -> "PopularList":
        return cls(recipes=[RecipeDetail.from_dict(r) for r in data.get("recipes") or []])


PAYLOAD_TYPES = {t.kind: t for t in (SearchResult, SingleRecipe, IngredientMatch, PopularList)}


def payload_from_dict(data: dict):
    """Rebuild a tagged payload read back from the cache."""
    if not isinstance(data, dict):
        raise ValueError(f"Cache payload must be an object, got {type(data).__name__}")
    try:
        payload_type = PAYLOAD_TYPES[data.get("kind")]
    except KeyError:
        raise ValueError(f"Unknown cache payload kind: {data.get('kind')!r}") from None
    return payload_type.from_dict(data)
