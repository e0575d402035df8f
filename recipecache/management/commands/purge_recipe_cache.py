from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from recipecache.exceptions import StoreUnavailable
from recipecache.quota import QuotaLedger
from recipecache.store import purge_expired


class Command(BaseCommand):
    help = "Delete expired Spoonacular cache entries and old quota records."

    def add_arguments(self, parser):
        parser.add_argument(
            "--quota-retention-days",
            type=int,
            default=None,
            help="Keep this many days of quota history (default: RECIPE_CACHE['QUOTA_RETENTION_DAYS']).",
        )
        parser.add_argument(
            "--skip-quota",
            action="store_true",
            help="Only sweep cache entries.",
        )

    def handle(self, *args, **options):
        try:
            deleted = purge_expired()
            for kind, n in deleted.items():
                self.stdout.write(f"{kind}: {n} expired entries deleted")

            if not options["skip_quota"]:
                days = options["quota_retention_days"]
                if days is None:
                    days = settings.RECIPE_CACHE.get("QUOTA_RETENTION_DAYS", 30)
                if days < 0:
                    raise CommandError("--quota-retention-days must be >= 0")
                pruned = QuotaLedger().prune(days)
                self.stdout.write(f"quota: {pruned} records older than {days} days deleted")
        except StoreUnavailable as e:
            raise CommandError(str(e)) from e

        self.stdout.write(self.style.SUCCESS("Recipe cache sweep complete."))
