import json

from django.core.management.base import BaseCommand, CommandError

from recipecache.exceptions import StoreUnavailable
from recipecache.orchestrator import get_orchestrator


class Command(BaseCommand):
    help = "Print cache counts per kind and today's Spoonacular quota usage."

    def add_arguments(self, parser):
        parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON.")

    def handle(self, *args, **options):
        try:
            data = get_orchestrator().stats()
        except StoreUnavailable as e:
            raise CommandError(str(e)) from e

        if options["json"]:
            self.stdout.write(json.dumps(data, indent=2, sort_keys=True))
            return

        for kind, s in data["cache"].items():
            self.stdout.write(
                f"{kind:<12} total={s['total']} fresh={s['fresh']} stale={s['stale']} reads={s['accesses']}"
            )
        q = data["quota"]
        self.stdout.write(
            f"quota {q['date']}: {q['used']}/{q['limit']} used, {q['remaining']} remaining "
            f"(buffer {q['buffer']}, {'open' if q['can_make_requests'] else 'closed'})"
        )
        for endpoint, n in sorted(q["endpoints"].items()):
            self.stdout.write(f"  {endpoint}: {n}")
        self.stdout.write(f"static fallback recipes: {data['static_recipes']}")
