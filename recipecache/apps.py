from django.apps import AppConfig


class RecipeCacheConfig(AppConfig):
    """App configuration for the quota-aware Spoonacular cache."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "recipecache"
    verbose_name = "Recipe cache"
