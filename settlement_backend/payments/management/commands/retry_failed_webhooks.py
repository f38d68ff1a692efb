# payments/management/commands/retry_failed_webhooks.py

from django.conf import settings
from django.core.management.base import BaseCommand

from payments.services.processor import retry_failed


class Command(BaseCommand):
    help = "Replay failed (and stuck) webhook inbox rows below the retry ceiling."

    def add_arguments(self, parser):
        parser.add_argument(
            "--max-retries",
            type=int,
            default=settings.WEBHOOK_MAX_RETRIES,
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=settings.WEBHOOK_RETRY_BATCH_SIZE,
        )

    def handle(self, *args, **options):
        count = retry_failed(
            max_retries=options["max_retries"],
            batch_size=options["batch_size"],
        )
        self.stdout.write(self.style.SUCCESS(f"Retried {count} webhook(s)"))
