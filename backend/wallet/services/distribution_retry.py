"""Sweep for completed rides whose token payout never went through."""

from typing import Tuple

from django.db import close_old_connections

from rides.models import Ride


def pending_distributions():
    """Completed rides that still owe their participants tokens."""
    return Ride.objects.filter(
        status=Ride.COMPLETED,
        tokens_distributed=False,
    ).order_by('completed_at', 'id')


def process_pending_distributions(dry_run: bool = False) -> Tuple[int, int]:
    """
    Re-attempt token distribution for every pending ride.

    Returns a tuple of (pending_count, distributed_count).
    """
    from services.ride_management import distribute_ride_tokens

    rides = list(pending_distributions())
    if dry_run:
        return len(rides), 0

    distributed_count = 0
    for ride in rides:
        if distribute_ride_tokens(ride):
            distributed_count += 1

    # Close stale DB connections for long-running workers
    close_old_connections()
    return len(rides), distributed_count
