from django.contrib import admin
from .models import (
    IngredientSearchCache,
    PopularCache,
    QuotaEndpointUsage,
    QuotaRecord,
    RecipeCache,
    SearchCache,
)

CACHE_LIST_DISPLAY = ("key", "expires_at", "access_count", "last_accessed_at", "updated_at")


@admin.register(SearchCache)
class SearchCacheAdmin(admin.ModelAdmin):
    list_display = CACHE_LIST_DISPLAY + ("query",)
    search_fields = ("key", "query")
    list_filter = ("expires_at",)


@admin.register(RecipeCache)
class RecipeCacheAdmin(admin.ModelAdmin):
    list_display = CACHE_LIST_DISPLAY + ("recipe_id",)
    search_fields = ("key",)
    list_filter = ("expires_at",)


@admin.register(IngredientSearchCache)
class IngredientSearchCacheAdmin(admin.ModelAdmin):
    list_display = CACHE_LIST_DISPLAY
    search_fields = ("key",)
    list_filter = ("expires_at",)


@admin.register(PopularCache)
class PopularCacheAdmin(admin.ModelAdmin):
    list_display = CACHE_LIST_DISPLAY + ("number",)
    search_fields = ("key",)
    list_filter = ("expires_at",)


class QuotaEndpointUsageInline(admin.TabularInline):
    model = QuotaEndpointUsage
    extra = 0
    readonly_fields = ("endpoint", "count")


@admin.register(QuotaRecord)
class QuotaRecordAdmin(admin.ModelAdmin):
    """Daily Spoonacular usage; counters are written only by the ledger."""

    list_display = ("day", "request_count", "limit", "reset_at", "updated_at")
    readonly_fields = ("request_count",)
    inlines = [QuotaEndpointUsageInline]
