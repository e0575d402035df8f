import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


def _cache_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("key", models.CharField(help_text="Deterministic key built by recipecache.keys.", max_length=512, unique=True)),
        ("payload", models.JSONField(blank=True, default=dict)),
        ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
        ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
        ("last_accessed_at", models.DateTimeField(default=django.utils.timezone.now)),
        ("expires_at", models.DateTimeField(db_index=True)),
        ("access_count", models.PositiveIntegerField(default=0, help_text="Incremented on every cache read; never reset.")),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SearchCache",
            fields=_cache_fields() + [
                ("query", models.CharField(blank=True, db_index=True, max_length=255)),
                ("filters", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "verbose_name": "search cache entry",
                "verbose_name_plural": "search cache entries",
                "ordering": ["-updated_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="RecipeCache",
            fields=_cache_fields() + [
                ("recipe_id", models.PositiveIntegerField(blank=True, db_index=True, null=True)),
            ],
            options={
                "verbose_name": "recipe cache entry",
                "verbose_name_plural": "recipe cache entries",
                "ordering": ["-updated_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="IngredientSearchCache",
            fields=_cache_fields() + [
                ("ingredients", models.JSONField(blank=True, default=list)),
            ],
            options={
                "verbose_name": "ingredient search cache entry",
                "verbose_name_plural": "ingredient search cache entries",
                "ordering": ["-updated_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="PopularCache",
            fields=_cache_fields() + [
                ("tags", models.JSONField(blank=True, default=list)),
                ("number", models.PositiveSmallIntegerField(default=10)),
            ],
            options={
                "verbose_name": "popular recipes cache entry",
                "verbose_name_plural": "popular recipes cache entries",
                "ordering": ["-updated_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="QuotaRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.DateField(unique=True)),
                ("request_count", models.PositiveIntegerField(default=0)),
                ("limit", models.PositiveIntegerField(help_text="Daily ceiling at the time the day started.")),
                ("reset_at", models.DateTimeField(help_text="Start of the next UTC day.")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "ordering": ["-day"],
            },
        ),
        migrations.CreateModel(
            name="QuotaEndpointUsage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("endpoint", models.CharField(max_length=32)),
                ("count", models.PositiveIntegerField(default=0)),
                (
                    "quota",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="endpoint_usage",
                        to="recipecache.quotarecord",
                    ),
                ),
            ],
            options={
                "ordering": ["endpoint"],
                "constraints": [
                    models.UniqueConstraint(fields=("quota", "endpoint"), name="uniq_quota_endpoint"),
                ],
            },
        ),
    ]
