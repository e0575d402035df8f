"""
JSON endpoints over the recipe cache.

Read endpoints (search, recipe, by-ingredients, popular) go through the
fallback orchestrator and always answer 200 with a ``from_cache`` flag.
Maintenance endpoints (staff only) expose stats, quota status, the expiry
sweep and a warm-up.
"""

import logging

from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from .exceptions import StoreUnavailable
from .orchestrator import get_orchestrator
from .store import purge_expired

logger = logging.getLogger(__name__)

# query-string params passed straight through as search filters
SEARCH_FILTERS = (
    "cuisine",
    "diet",
    "type",
    "intolerances",
    "includeIngredients",
    "excludeIngredients",
    "equipment",
    "maxReadyTime",
    "number",
    "offset",
)
INT_FILTERS = {"maxReadyTime", "number", "offset"}


def _bad_request(message: str) -> Response:
    return Response({"success": False, "message": message}, status=status.HTTP_400_BAD_REQUEST)


def _csv(value: str | None) -> list[str]:
    return [x.strip() for x in (value or "").split(",") if x.strip()]


@api_view(["GET"])
def search(request):
    filters = {}
    for name in SEARCH_FILTERS:
        value = request.query_params.get(name)
        if value in (None, ""):
            continue
        if name in INT_FILTERS:
            if not value.isdigit():
                return _bad_request(f"{name} must be a non-negative integer")
            value = int(value)
        filters[name] = value

    result = get_orchestrator().search(request.query_params.get("q", ""), filters)
    return Response({"success": True, "data": result.to_dict()})


@api_view(["GET"])
def recipe_detail(request, recipe_id):
    try:
        result = get_orchestrator().get_by_id(recipe_id)
    except ValueError as e:
        return _bad_request(str(e))
    payload = {"success": True, "data": result.to_dict()}
    if result.recipe is None:
        payload["message"] = "Recipe not found"
    return Response(payload)


@api_view(["GET"])
def by_ingredients(request):
    ingredients = _csv(request.query_params.get("ingredients"))
    if not ingredients:
        return _bad_request("ingredients is required (comma-separated)")
    result = get_orchestrator().find_by_ingredients(ingredients)
    return Response({"success": True, "data": result.to_dict()})


@api_view(["GET"])
def popular(request):
    raw_number = request.query_params.get("number") or "10"
    if not raw_number.isdigit():
        return _bad_request("number must be an integer")
    try:
        result = get_orchestrator().popular(_csv(request.query_params.get("tags")), int(raw_number))
    except ValueError as e:
        return _bad_request(str(e))
    return Response({"success": True, "data": result.to_dict()})


@api_view(["GET"])
@permission_classes([IsAdminUser])
def stats(request):
    try:
        data = get_orchestrator().stats()
    except StoreUnavailable as e:
        logger.warning("Cache stats unavailable: %s", e)
        return Response(
            {"success": False, "message": "Cache store unavailable"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return Response({"success": True, "data": data})


@api_view(["GET"])
@permission_classes([IsAdminUser])
def quota(request):
    try:
        data = get_orchestrator().ledger.status()
    except StoreUnavailable as e:
        logger.warning("Quota status unavailable: %s", e)
        return Response(
            {"success": False, "message": "Quota ledger unavailable"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return Response({"success": True, "data": data})


@api_view(["POST"])
@permission_classes([IsAdminUser])
def clear_expired(request):
    try:
        deleted = purge_expired(get_orchestrator().stores)
    except StoreUnavailable as e:
        logger.warning("Expiry sweep failed: %s", e)
        return Response(
            {"success": False, "message": "Cache store unavailable"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return Response({"success": True, "data": {"deleted": deleted}})


@api_view(["POST"])
@permission_classes([IsAdminUser])
def warmup(request):
    queries = request.data.get("queries") if isinstance(request.data, dict) else None
    if queries is None:
        queries = settings.RECIPE_CACHE.get("WARMUP_QUERIES", [])
    if not isinstance(queries, list) or not all(isinstance(q, str) for q in queries):
        return _bad_request("queries must be a list of strings")
    sources = get_orchestrator().warm_up(queries)
    return Response({"success": True, "data": sources, "message": "Cache warmed up"})
