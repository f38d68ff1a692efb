# payments/management/commands/process_webhook_inbox.py

from __future__ import annotations

import time

from django.core.management.base import BaseCommand

from payments.services.processor import drain_pending


class Command(BaseCommand):
    help = "Process pending webhook inbox rows (deferred queue worker)."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=100, help="Rows per pass.")
        parser.add_argument(
            "--loop",
            action="store_true",
            help="Keep polling instead of exiting after one pass.",
        )
        parser.add_argument(
            "--sleep",
            type=float,
            default=2.0,
            help="Seconds between passes when --loop is set and the inbox is empty.",
        )

    def handle(self, *args, **options):
        limit = max(1, int(options["limit"]))
        loop = bool(options["loop"])
        pause = max(0.1, float(options["sleep"]))

        while True:
            count = drain_pending(limit=limit)
            if count:
                self.stdout.write(self.style.SUCCESS(f"Processed {count} webhook(s)"))
            if not loop:
                if not count:
                    self.stdout.write("Inbox empty")
                return
            if not count:
                time.sleep(pause)
