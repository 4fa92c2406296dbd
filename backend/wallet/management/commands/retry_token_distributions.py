from django.core.management.base import BaseCommand

from wallet.services.distribution_retry import process_pending_distributions


class Command(BaseCommand):
    help = "Pay out tokens for completed rides whose distribution failed."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report how many rides are waiting for distribution.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        pending, distributed = process_pending_distributions(dry_run=dry_run)

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f"DRY RUN: {pending} ride(s) waiting for token distribution.")
            )
            return

        style = self.style.SUCCESS if distributed == pending else self.style.WARNING
        self.stdout.write(style(f"Distributed tokens for {distributed} of {pending} ride(s)."))
