# ledger/management/commands/verify_ledger_balances.py

from __future__ import annotations

from django.core.management.base import BaseCommand

from ledger.services.balance_service import iter_balance_mismatches
from ledger.services.ledger_service import recompute_balance_from_ledger
from workspaces.models import Workspace


class Command(BaseCommand):
    help = "Check every customer's cached balance against the ledger sum."

    def add_arguments(self, parser):
        parser.add_argument("--workspace", help="Workspace id (optional)")
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any drift is found.",
        )
        parser.add_argument(
            "--repair",
            action="store_true",
            help="Rebuild drifted balances from the ledger.",
        )

    def handle(self, *args, **options):
        workspace = None
        if options.get("workspace"):
            workspace = Workspace.objects.filter(pk=options["workspace"]).first()
            if workspace is None:
                self.stderr.write(self.style.ERROR("Unknown workspace"))
                return self._exit(bool(options.get("strict")))

        mismatches = list(iter_balance_mismatches(workspace=workspace))

        for check in mismatches:
            self.stdout.write(
                self.style.ERROR(
                    f"customer={check.customer_id} cached={check.cached_balance} "
                    f"ledger={check.ledger_balance} drift={check.drift}"
                )
            )
            if options.get("repair"):
                recompute_balance_from_ledger(customer_id=check.customer_id)

        if not mismatches:
            self.stdout.write(self.style.SUCCESS("All customer balances match the ledger"))
        elif options.get("repair"):
            self.stdout.write(self.style.WARNING(f"Repaired {len(mismatches)} balance(s)"))

        return self._exit(bool(options.get("strict")) and bool(mismatches) and not options.get("repair"))

    def _exit(self, fail: bool):
        if fail:
            raise SystemExit(1)
        return None
