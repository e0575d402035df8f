from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from recipecache.exceptions import StoreUnavailable
from recipecache.orchestrator import get_orchestrator


class Command(BaseCommand):
    help = "Prime the recipe cache with popular recipes and common searches."

    def add_arguments(self, parser):
        parser.add_argument(
            "--query",
            action="append",
            dest="queries",
            help="Search to warm (repeatable). Defaults to RECIPE_CACHE['WARMUP_QUERIES'].",
        )
        parser.add_argument(
            "--import-static",
            action="store_true",
            help="Also copy the bundled fallback recipes into the recipe cache (no quota used).",
        )
        parser.add_argument(
            "--no-upstream",
            action="store_true",
            help="Skip the search/popular warm-up; useful with --import-static.",
        )

    def handle(self, *args, **options):
        orchestrator = get_orchestrator()

        if options["import_static"]:
            try:
                counts = orchestrator.import_static()
            except StoreUnavailable as e:
                raise CommandError(str(e)) from e
            self.stdout.write(f"static import: {counts['imported']} imported, {counts['skipped']} skipped")

        if not options["no_upstream"]:
            queries = options["queries"] or settings.RECIPE_CACHE.get("WARMUP_QUERIES", [])
            for name, source in orchestrator.warm_up(queries).items():
                self.stdout.write(f"{name}: {source}")

        self.stdout.write(self.style.SUCCESS("Recipe cache warm-up complete."))
