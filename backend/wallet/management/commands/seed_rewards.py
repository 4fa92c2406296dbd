import logging

from django.core.management.base import BaseCommand

from wallet.catalog import DEFAULT_REWARDS
from wallet.models import Reward

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Create or update the default partner reward catalog."

    def handle(self, *args, **options):
        created_count = 0
        for entry in DEFAULT_REWARDS:
            values = {k: v for k, v in entry.items() if k != 'id'}
            _, created = Reward.objects.update_or_create(id=entry['id'], defaults=values)
            created_count += int(created)

        logger.info("Seeded %s rewards (%s new)", len(DEFAULT_REWARDS), created_count)
        self.stdout.write(
            self.style.SUCCESS(
                f"Loaded {len(DEFAULT_REWARDS)} reward(s), {created_count} new."
            )
        )
