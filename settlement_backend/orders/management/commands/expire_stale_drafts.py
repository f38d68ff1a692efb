# orders/management/commands/expire_stale_drafts.py

from django.core.management.base import BaseCommand

from orders.services.order_service import expire_stale_drafts


class Command(BaseCommand):
    help = "Cancel draft orders older than DRAFT_ORDER_TTL_HOURS and release their stock."

    def add_arguments(self, parser):
        parser.add_argument("--ttl-hours", type=int, default=None)

    def handle(self, *args, **options):
        count = expire_stale_drafts(ttl_hours=options.get("ttl_hours"))
        self.stdout.write(self.style.SUCCESS(f"Cancelled {count} stale draft(s)"))
