from django.urls import path
from . import views

app_name = "recipecache"

urlpatterns = [
    # Cached reads (always answer; see `source` for provenance)
    path("search/", views.search, name="search"),
    path("recipes/<str:recipe_id>/", views.recipe_detail, name="recipe_detail"),
    path("by-ingredients/", views.by_ingredients, name="by_ingredients"),
    path("popular/", views.popular, name="popular"),

    # Maintenance
    path("stats/", views.stats, name="stats"),
    path("quota/", views.quota, name="quota"),
    path("clear-expired/", views.clear_expired, name="clear_expired"),
    path("warmup/", views.warmup, name="warmup"),
]
