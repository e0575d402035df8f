"""
Deterministic cache keys for Spoonacular requests.

Keys look like:
    search:pasta:cuisine=italian&diet=vegan
    recipe:715421
    ingredients:chicken,onion,pepper
    random:dessert,vegan:10

Parameter names are sorted by code point and list values are sorted before
joining, so the same request made with differently ordered parameters maps
to the same key. Nothing here depends on locale or process state.
"""

from urllib.parse import quote

SEARCH = "search"
RECIPE = "recipe"
INGREDIENTS = "ingredients"
POPULAR = "popular"

PREFIXES = {
    SEARCH: "search",
    RECIPE: "recipe",
    INGREDIENTS: "ingredients",
    POPULAR: "random",
}

DEFAULT_POPULAR_NUMBER = 10


def _scalar(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    raise TypeError(f"Unsupported cache key value: {value!r}")


def _value(value) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(sorted(_scalar(v) for v in value))
    return _scalar(value)


def encode_params(params: dict | None) -> str:
    """Serialize a flat parameter mapping as ``k=v&k=v`` with sorted keys."""
    if not params:
        return ""
    parts = []
    for name in sorted(params):
        value = params[name]
        if value is None or value == "" or value == [] or value == ():
            continue
        parts.append(f"{name}={quote(_value(value), safe=',')}")
    return "&".join(parts)


def normalize_query(query: str | None) -> str:
    return " ".join((query or "").split()).lower()


def normalize_ingredients(ingredients) -> list[str]:
    """Lower-case, strip, de-duplicate and sort ingredient names."""
    if isinstance(ingredients, str):
        raise TypeError("ingredients must be a list of names, not a string")
    names = {(name or "").strip().lower() for name in ingredients or []}
    return sorted(n for n in names if n)


def parse_recipe_id(recipe_id) -> int:
    """Accept ``715421``, ``"715421"`` or ``"spoonacular-715421"``."""
    if isinstance(recipe_id, bool):
        raise ValueError(f"Invalid recipe id: {recipe_id!r}")
    if isinstance(recipe_id, int):
        rid = recipe_id
    else:
        raw = str(recipe_id or "").strip().removeprefix("spoonacular-")
        if not raw.isdigit():
            raise ValueError(f"Invalid recipe id: {recipe_id!r}")
        rid = int(raw)
    if rid <= 0:
        raise ValueError(f"Invalid recipe id: {recipe_id!r}")
    return rid


def search_key(query: str | None, filters: dict | None = None) -> str:
    return f"{PREFIXES[SEARCH]}:{quote(normalize_query(query), safe=' ')}:{encode_params(filters)}"


def recipe_key(recipe_id) -> str:
    return f"{PREFIXES[RECIPE]}:{parse_recipe_id(recipe_id)}"


def ingredients_key(ingredients) -> str:
    return f"{PREFIXES[INGREDIENTS]}:{','.join(normalize_ingredients(ingredients))}"


def popular_key(tags=None, number: int = DEFAULT_POPULAR_NUMBER) -> str:
    clean = sorted({(t or "").strip().lower() for t in tags or [] if (t or "").strip()})
    return f"{PREFIXES[POPULAR]}:{','.join(clean)}:{int(number)}"


def make_key(operation: str, params: dict | None = None) -> str:
    """Build the cache key for ``operation`` from its request parameters.

    ``params`` carries ``query`` plus filters for search, ``id`` for recipe,
    ``ingredients`` for ingredient search and ``tags``/``number`` for popular.
    """
    params = dict(params or {})
    if operation == SEARCH:
        query = params.pop("query", "")
        return search_key(query, params)
    if operation == RECIPE:
        return recipe_key(params.get("id"))
    if operation == INGREDIENTS:
        return ingredients_key(params.get("ingredients") or [])
    if operation == POPULAR:
        return popular_key(params.get("tags"), params.get("number") or DEFAULT_POPULAR_NUMBER)
    raise ValueError(f"Unknown cache operation: {operation!r}")
