# inventory/management/commands/expire_stock_reservations.py

from django.core.management.base import BaseCommand

from inventory.services.reservations import expire_reservations


class Command(BaseCommand):
    help = "Release stock held by reservations past their expires_at."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=500)

    def handle(self, *args, **options):
        count = expire_reservations(limit=max(1, options["limit"]))
        self.stdout.write(self.style.SUCCESS(f"Expired {count} reservation(s)"))
